from flask_wtf import FlaskForm
from wtforms import StringField, FloatField
from wtforms.validators import DataRequired, Optional, Length

from cellar.utils.validators import validate_positive_number, validate_grape_variety


class PlotForm(FlaskForm):
    """新建 / 编辑地块"""
    name = StringField('名称', validators=[DataRequired(message="请输入地块名称"), Length(max=64)])
    description = StringField('描述', validators=[Optional(), Length(max=255)])
    surface = FloatField('面积 (ha)', validators=[DataRequired(message="请输入面积"), validate_positive_number])
    grape_variety = StringField('葡萄品种', validators=[DataRequired(message="请选择品种"), validate_grape_variety])
