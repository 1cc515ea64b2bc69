# hms_core/iam/api/schema_serializers.py
from __future__ import annotations

from rest_framework import serializers


class LoginRequestSerializer(serializers.Serializer):
    # username, email or mobile number
    username = serializers.CharField()
    password = serializers.CharField(style={"input_type": "password"}, trim_whitespace=False)


class UserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(allow_null=True, required=False)
    email = serializers.EmailField(allow_null=True, required=False, allow_blank=True)
    first_name = serializers.CharField(allow_blank=True, required=False)
    last_name = serializers.CharField(allow_blank=True, required=False)
    is_superuser = serializers.BooleanField()


class ProfileSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=["staff", "doctor"])
    id = serializers.UUIDField()
    code = serializers.CharField()
    name = serializers.CharField()
    department = serializers.CharField(allow_blank=True, allow_null=True)


class LoginResponseSerializer(serializers.Serializer):
    detail = serializers.CharField()
    user = UserSerializer()
    roles = serializers.ListField(child=serializers.CharField())


class DetailSerializer(serializers.Serializer):
    detail = serializers.CharField()


class MeResponseSerializer(serializers.Serializer):
    user = UserSerializer()
    roles = serializers.ListField(child=serializers.CharField())
    profile = ProfileSerializer(allow_null=True)


class SessionBootstrapResponseSerializer(MeResponseSerializer):
    # "<module>.<action>" pairs the UI uses to show or hide menus and buttons
    permissions = serializers.ListField(child=serializers.CharField())
    server_time = serializers.DateTimeField()
    api_version = serializers.CharField()


class AccountCreateSerializer(serializers.Serializer):
    entity_type = serializers.ChoiceField(choices=["staff", "doctor"])
    entity_id = serializers.UUIDField()
    login = serializers.CharField(help_text="Email address or mobile number.")
    password = serializers.CharField(style={"input_type": "password"}, trim_whitespace=False)
    role = serializers.CharField(required=False, allow_blank=True, default="")


class AccountResponseSerializer(serializers.Serializer):
    user = UserSerializer()
    roles = serializers.ListField(child=serializers.CharField())
    profile = ProfileSerializer()
