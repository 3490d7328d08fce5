from flask import request, jsonify
from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity

from . import bp
from ..model import User
from ..extensions import db
from ..utils.api import api_ok, api_error
from ..utils.decorators import _current_user, role_required

ROLES = {"customer", "employee", "delivery", "admin"}


@bp.post("/register")
@jwt_required(optional=True)   # public signups; role honored only for an admin caller
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()
    phone = (data.get("phone") or "").strip() or None

    if not email:
        return jsonify(api_error("Email required")), 400
    if not password or len(password) < 6:
        return jsonify(api_error("Password required, min 6 chars")), 400
    if not name:
        return jsonify(api_error("Name required")), 400
    if User.query.filter_by(email=email).first():
        return jsonify(api_error("Email already registered")), 409

    # Bootstrap: very first account becomes admin
    is_first_user = db.session.query(User.id).count() == 0
    role = "admin" if is_first_user else "customer"

    requested_role = (data.get("role") or "customer").strip().lower()
    if not is_first_user and get_jwt_identity():
        caller = _current_user()
        if caller and caller.role == "admin" and requested_role in ROLES:
            role = requested_role

    user = User(email=email, password_hash=generate_password_hash(password), name=name, phone=phone, role=role)
    db.session.add(user)
    db.session.commit()

    return jsonify(api_ok("Account created successfully", data={"user": user.as_dict()})), 201


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify(api_error("Email and password are required")), 400

    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return jsonify(api_error("Invalid email or password")), 401

    access_token = create_access_token(identity=str(user.id))
    return jsonify(api_ok(
        "You've logged in successfully",
        data={"user": user.as_dict(), "user_logged_in": True, "token": access_token},
    )), 200


@bp.get("/me")
@jwt_required()
def me():
    user = _current_user()
    if not user:
        return jsonify(api_error("user not found")), 404
    return jsonify(api_ok("OK", data={"user": user.as_dict()})), 200


@bp.patch("/users/<int:user_id>/role")
@role_required("admin")
def update_user_role(user_id):
    body = request.get_json(silent=True) or {}
    new_role = (body.get("role") or "").strip().lower()
    if new_role not in ROLES:
        return jsonify(api_error("Invalid role")), 400

    target = db.session.get(User, user_id)
    if not target:
        return jsonify(api_error("User not found")), 404

    # Prevent demoting the last admin
    if target.role == "admin" and new_role != "admin":
        admin_count = db.session.query(User).filter_by(role="admin").count()
        if admin_count <= 1:
            return jsonify(api_error("Cannot demote the last admin")), 400

    target.role = new_role
    db.session.commit()
    return jsonify(api_ok("Role updated", data={"user": target.as_dict()})), 200
