from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Length, Email, EqualTo

class LoginForm(FlaskForm):
    """用户登录表单"""
    email = StringField('电子邮箱', validators=[
        DataRequired(message="请输入邮箱地址"),
        Email(message="邮箱格式不正确")
    ])
    password = PasswordField('密码', validators=[
        DataRequired(message="请输入密码")
    ])
    remember_me = BooleanField('保持登录')

class RegisterForm(FlaskForm):
    """用户注册表单"""
    name = StringField('酒庄 / 姓名', validators=[
        DataRequired(), Length(min=2, max=64)
    ])
    email = StringField('电子邮箱', validators=[
        DataRequired(), Email()
    ])
    password = PasswordField('密码', validators=[
        DataRequired(), Length(min=6, message="密码长度至少6位")
    ])
    confirm_password = PasswordField('确认密码', validators=[
        DataRequired(), EqualTo('password', message='两次输入的密码不一致')
    ])
