from rest_framework.serializers import ModelSerializer
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
User = get_user_model()

class UserSerializer(ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'user_code', 'first_name', 'last_name', 'email', 'phone_number', 'branch',
                  'street', 'city', 'state', 'zip_code', 'country', 'created_at', 'updated_at', 'password']
        extra_kwargs = {
            'password': {'write_only': True},}
        read_only_fields = ('id', 'user_code', 'created_at', 'updated_at')

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        validated_data['role'] = User.Role.CUSTOMER
        user = User.objects.create_user(password=password, **validated_data)
        return user


class ProfileSerializer(ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'user_code', 'role', 'first_name', 'last_name', 'email', 'phone_number', 'branch',
                  'street', 'city', 'state', 'zip_code', 'country', 'account_status', 'created_at', 'updated_at']
        read_only_fields = ('id', 'user_code', 'role', 'email', 'account_status', 'created_at', 'updated_at')


class StaffSerializer(ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'email', 'phone_number', 'branch', 'role',
                  'account_status', 'created_at', 'password']
        extra_kwargs = {
            'password': {'write_only': True},}
        read_only_fields = ('id', 'created_at')

    def validate_role(self, value):
        if value not in {User.Role.WAREHOUSE, User.Role.ADMIN}:
            raise serializers.ValidationError("Staff role must be warehouse or admin.")
        return value

    def create(self, validated_data):
        password = validated_data.pop('password', None)
        validated_data.setdefault('role', User.Role.WAREHOUSE)
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        user = super().update(instance, validated_data)
        if password:
            user.set_password(password)
            user.save(update_fields=["password", "updated_at"])
        return user


class CustomerDirectorySerializer(ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'user_code', 'first_name', 'last_name', 'email', 'phone_number', 'branch', 'created_at']


class PasswordChangeSerializer(serializers.Serializer):
    current_password = serializers.CharField()
    new_password = serializers.CharField(min_length=8)

    def validate(self, attrs):
        user = self.context['request'].user
        if not user.check_password(attrs['current_password']):
            raise serializers.ValidationError({"current_password": "Current password is incorrect."})
        validate_password(attrs['new_password'], user)
        return attrs

    def save(self, **kwargs):
        user = self.context['request'].user
        user.set_password(self.validated_data['new_password'])
        user.save(update_fields=["password", "updated_at"])
        return user
