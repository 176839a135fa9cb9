from marshmallow import Schema, fields, pre_load, validates, ValidationError

def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v

class UserCreateSchema(Schema):
    name = fields.String(required=True)
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict):
            data = dict(data)
            if "email" in data:
                data["email"] = _norm_email(data["email"])
            if isinstance(data.get("name"), str):
                data["name"] = data["name"].strip()
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < 8:
            raise ValidationError("Password must be at least 8 characters long.")

    @validates("name")
    def validate_name(self, value, **kwargs):
        if not value:
            raise ValidationError("Name is required.")

class UserLoginSchema(Schema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_norm_email(data["email"]))
        return data

class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    name = fields.String(allow_none=True)
    email = fields.String(allow_none=False)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)

class TokensOutSchema(Schema):
    access_token = fields.String()
    refresh_token = fields.String()
    access_expires_at = fields.DateTime()
    refresh_expires_at = fields.DateTime()
