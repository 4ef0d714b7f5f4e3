from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, IntegerField, SelectField, DateTimeField
from wtforms.validators import DataRequired, Optional, Length, NumberRange

from cellar.core.records import CommodityType
from cellar.utils.validators import validate_positive_number, validate_non_negative


class ActionTypeForm(FlaskForm):
    name = StringField('名称', validators=[DataRequired(), Length(max=64)])
    description = StringField('描述', validators=[Optional(), Length(max=255)])


class ActionForm(FlaskForm):
    """新建 / 编辑生产动作"""
    type_id = IntegerField('动作类型', validators=[DataRequired(message="请选择动作类型")])
    tank_id = IntegerField('酒罐', validators=[Optional()])
    description = StringField('描述', validators=[Optional(), Length(max=255)])
    duration = IntegerField('持续天数', default=1, validators=[Optional(), NumberRange(min=1)])
    reference_volume = FloatField('参考体积 (hL)', validators=[Optional(), validate_positive_number])
    started_at = DateTimeField('开始日期', format='%Y-%m-%d', validators=[Optional()])
    finished_at = DateTimeField('结束日期', format='%Y-%m-%d', validators=[Optional()])


class ConsumableForm(FlaskForm):
    """辅料"""
    name = StringField('名称', validators=[DataRequired(message="请输入辅料名称"), Length(max=64)])
    unit = StringField('单位', validators=[DataRequired(message="请输入单位"), Length(max=16)])
    quantity = FloatField('用量', validators=[DataRequired(message="请输入用量"), validate_positive_number])
    description = StringField('描述', validators=[Optional(), Length(max=255)])
    commodity = SelectField(
        '类别', choices=[(c, c) for c in CommodityType.ALL], default=CommodityType.ANALYSIS_LAB
    )


class ConsumableEditForm(ConsumableForm):
    """编辑已保存辅料，允许用量为 0"""
    quantity = FloatField('用量', validators=[Optional(), validate_non_negative])


class ProcessForm(FlaskForm):
    name = StringField('名称', validators=[DataRequired(message="请输入流程名称"), Length(max=64)])
    description = StringField('描述', validators=[Optional(), Length(max=255)])
    start_date = DateTimeField('开始日期', format='%Y-%m-%d', validators=[Optional()])


class AssignActionForm(FlaskForm):
    action_id = IntegerField('动作', validators=[DataRequired(message="请选择动作")])
    assigned_date = DateTimeField('计划日期', format='%Y-%m-%d', validators=[Optional()])
