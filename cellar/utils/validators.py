"""
表单验证器
"""
from flask import current_app
from wtforms.validators import ValidationError
from cellar.core.records import GRAPE_VARIETIES

def validate_positive_number(form, field):
    """验证正数"""
    if field.data is not None and field.data <= 0:
        raise ValidationError('数值必须大于0')

def validate_non_negative(form, field):
    """验证非负数"""
    if field.data is not None and field.data < 0:
        raise ValidationError('数值不能为负')

def validate_grape_variety(form, field):
    """验证葡萄品种"""
    if field.data and field.data.strip().upper() not in GRAPE_VARIETIES:
        raise ValidationError('未知的葡萄品种')

def validate_yield_ratio(form, field):
    """出酒率必须在 YIELD_RATIO_MIN 与 YIELD_RATIO_MAX 之间"""
    low = current_app.config['YIELD_RATIO_MIN']
    high = current_app.config['YIELD_RATIO_MAX']
    if field.data is not None and not low <= field.data <= high:
        raise ValidationError(f'出酒率必须在 {low} 到 {high} hL/ha 之间')

def validate_form(form):
    """校验 FlaskForm，失败时抛出带字段错误的业务 ValidationError"""
    from cellar.exceptions import ValidationError as InvalidInput
    if not form.validate_on_submit():
        raise InvalidInput('表单数据无效', payload={'errors': form.errors})
    return form
