# files/exceptions.py

from rest_framework import status
from rest_framework.exceptions import APIException


class TransformFailed(APIException):
    """
    An encrypt/decrypt transform could not be completed. Wrong passwords,
    corrupted ciphertext and storage I/O failures all surface as this one error.
    """
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Encryption/decryption failed."
    default_code = 'transform_failed'
