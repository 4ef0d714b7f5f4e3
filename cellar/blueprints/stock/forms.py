from flask_wtf import FlaskForm
from wtforms import StringField, FloatField
from wtforms.validators import DataRequired, Optional, Length

from cellar.utils.validators import validate_positive_number, validate_non_negative


class StockForm(FlaskForm):
    """新建 / 编辑库存"""
    name = StringField('名称', validators=[DataRequired(message="请输入名称"), Length(max=64)])
    unit = StringField('单位', validators=[DataRequired(message="请输入单位"), Length(max=16)])
    quantity = FloatField('数量', default=0, validators=[Optional()])
    minimum_qty = FloatField('预警阈值', default=0, validators=[Optional(), validate_non_negative])
    description = StringField('备注', validators=[Optional(), Length(max=255)])


class RestockForm(FlaskForm):
    """补货"""
    quantity = FloatField('补货数量', validators=[DataRequired(message="请输入补货数量"), validate_positive_number])
