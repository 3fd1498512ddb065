from .invalid_credential_result import CodeMap, InvalidCredentialResult

__all__ = ['CodeMap', 'InvalidCredentialResult']
