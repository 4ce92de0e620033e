# files/custom_auth.py
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.models import TokenUser
from rest_framework_simplejwt.settings import api_settings as simple_jwt_settings
from django.utils.translation import gettext_lazy as _
from rest_framework_simplejwt.exceptions import InvalidToken


class ForceTokenUserJWTAuthentication(JWTAuthentication):
    def get_user(self, validated_token):
        """
        Returns a TokenUser instance based on the validated token.
        Users live in the auth service, so there is no local database lookup.
        """
        if simple_jwt_settings.USER_ID_CLAIM not in validated_token:
            raise InvalidToken(_("Token contained no recognizable user identification"))

        # TokenUser reads USER_ID_CLAIM itself and exposes it as `id` / `pk`.
        return TokenUser(validated_token)
