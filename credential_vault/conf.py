"""Credential Vault default settings.

Every value can be overridden through an environment variable of the
same name.
"""
import os
from pathlib import Path

VAULT_HOME = Path(
    os.environ.get("VAULT_HOME", Path.home().joinpath(".credential_vault"))
).expanduser()
VAULT_STORE_NAME = os.environ.get("VAULT_STORE_NAME", "credential_vault_keys")
VAULT_KEY_ALIAS = os.environ.get("VAULT_KEY_ALIAS", "vault_secret_key")
VAULT_CIPHER_BACKEND = os.environ.get("VAULT_CIPHER_BACKEND", "aesgcm")
VAULT_RECORDS_FILE = os.environ.get("VAULT_RECORDS_FILE", "records.json")
VAULT_MASTER_KEY_FILE = "master.key"
