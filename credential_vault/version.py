"""Credential Vault Meta information.
   Credential Vault stores account credentials locally with every
   password encrypted at rest.
"""
__title__ = 'credential_vault'
__description__ = (
   'Credential Vault stores account credentials locally with every '
   'password encrypted at rest.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2026 Credential Vault Authors'
__author__ = 'Credential Vault Authors'
__license__ = 'Apache-2.0'
