from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, IntegerField
from wtforms.validators import DataRequired, Optional, Length

from cellar.utils.validators import validate_positive_number


class BatchForm(FlaskForm):
    """新建 / 编辑 cuvée"""
    name = StringField('名称', validators=[DataRequired(message="请输入 cuvée 名称"), Length(max=64)])
    description = StringField('描述', validators=[Optional(), Length(max=255)])
    quantity = FloatField('总体积 (hL)', validators=[DataRequired(message="请输入体积"), validate_positive_number])


class AssignProcessForm(FlaskForm):
    process_id = IntegerField('工艺流程', validators=[DataRequired(message="请选择工艺流程")])
