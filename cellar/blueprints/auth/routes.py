from flask import jsonify
from flask_login import login_user, logout_user, login_required, current_user

from cellar.extensions import db
from cellar.exceptions import CellarException, PermissionDenied, ValidationError
from cellar.models.auth import User, MAX_FAILED_LOGINS
from cellar.blueprints.auth import auth_bp
from cellar.blueprints.auth.forms import LoginForm, RegisterForm
from cellar.utils.audit import log_action
from cellar.utils.validators import validate_form


@auth_bp.route('/login', methods=['POST'])
def login():
    form = validate_form(LoginForm())
    user = User.query.filter_by(email=form.email.data.lower()).first()

    # 1. 验证用户存在
    if user is None:
        raise CellarException('邮箱或密码错误', code=401)

    # 2. 检查账号是否被锁定
    if user.is_locked():
        raise PermissionDenied('该账户已被临时锁定 (连续登录失败5次)，请30分钟后重试')

    # 3. 验证密码
    if not user.verify_password(form.password.data):
        user.record_failed_login()
        remaining_attempts = max(0, MAX_FAILED_LOGINS - user.failed_login_attempts)
        raise CellarException(
            '邮箱或密码错误', code=401, payload={'remaining_attempts': remaining_attempts}
        )

    # 4. 验证用户是否被封禁
    if not user.is_active_user:
        raise PermissionDenied('该账户已被停用，请联系管理员')

    # 5. 执行登录
    login_user(user, remember=form.remember_me.data)
    user.reset_failed_attempts()
    log_action('auth', 'login_success', {'email': user.email})

    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    log_action('auth', 'logout', {'email': current_user.email})
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/register', methods=['POST'])
def register():
    """注册 (默认注册为普通用户)，成功后直接登录"""
    form = validate_form(RegisterForm())
    email = form.email.data.lower()

    if User.query.filter_by(email=email).first():
        raise ValidationError('该电子邮箱已被注册', payload={'errors': {'email': ['该电子邮箱已被注册']}})

    user = User(name=form.name.data, email=email, password=form.password.data)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    log_action('auth', 'register', {'email': user.email})
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict()})
