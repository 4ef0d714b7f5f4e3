from flask_wtf import FlaskForm
from wtforms import StringField, FloatField, SelectField, IntegerField, DateTimeField
from wtforms.validators import DataRequired, Optional, Length

from cellar.core.records import TankMaterial, TankStatus
from cellar.utils.validators import validate_positive_number, validate_yield_ratio


class TankForm(FlaskForm):
    """新建 / 编辑酒罐"""
    name = StringField('名称', validators=[DataRequired(message="请输入酒罐名称"), Length(max=64)])
    description = StringField('描述', validators=[Optional(), Length(max=255)])
    material = SelectField('材质', choices=[(m, m) for m in TankMaterial.ALL], default=TankMaterial.INOX)
    status = SelectField(
        '状态',
        choices=[(s, s) for s in TankStatus.ALL],
        default=TankStatus.EMPTY
    )
    capacity = FloatField('容量 (hL)', validators=[DataRequired(message="请输入容量"), validate_positive_number])


class AssignPlotForm(FlaskForm):
    """地块收成入罐"""
    plot_id = IntegerField('地块', validators=[DataRequired(message="请选择地块")])
    volume = FloatField('体积 (hL)', validators=[DataRequired(message="请输入体积"), validate_positive_number])
    harvest_date = DateTimeField('采收日期', format='%Y-%m-%d', validators=[Optional()])
    yield_ratio = FloatField('出酒率 (hL/ha)', validators=[Optional(), validate_yield_ratio])


class RemoveWineForm(FlaskForm):
    """出罐装瓶"""
    volume = FloatField('体积 (hL)', validators=[DataRequired(message="请输入体积"), validate_positive_number])
    name = StringField('cuvée 名称', validators=[Optional(), Length(max=64)])
    created_at = DateTimeField('日期', format='%Y-%m-%d', validators=[Optional()])


class AllocateBatchForm(FlaskForm):
    """cuvée 分装入罐"""
    batch_id = IntegerField('cuvée', validators=[DataRequired(message="请选择 cuvée")])
    volume = FloatField('体积 (hL)', validators=[DataRequired(message="请输入体积"), validate_positive_number])
