from marshmallow import Schema, fields, validate


class LoginSchema(Schema):
    # username is matched byte-for-byte; no trimming or case folding
    username = fields.String(required=True, validate=validate.Length(min=1, max=150))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=1))


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String(allow_none=False)
