import base64

import pytest

from headrest.core import encryption
from headrest.core.exceptions import ConfigurationError, DecryptionError


def test_encrypt_produces_versioned_token_and_decrypts():
    token = encryption.encrypt('ps-webservice-key', master_key='k')
    assert token.startswith('v1:')
    assert token.count(':') == 3
    assert encryption.decrypt(token, master_key='k') == 'ps-webservice-key'


def test_each_encryption_uses_fresh_salt_and_nonce():
    assert encryption.encrypt('same', master_key='k') != encryption.encrypt('same', master_key='k')


def test_tampered_ciphertext_raises():
    version, salt, nonce, ciphertext = encryption.encrypt('secret', master_key='k').split(':')
    raw = bytearray(base64.urlsafe_b64decode(ciphertext))
    raw[0] ^= 0x01
    tampered = base64.urlsafe_b64encode(bytes(raw)).decode('ascii')
    with pytest.raises(DecryptionError):
        encryption.decrypt(':'.join([version, salt, nonce, tampered]), master_key='k')


def test_wrong_master_key_raises():
    token = encryption.encrypt('secret', master_key='right')
    with pytest.raises(DecryptionError):
        encryption.decrypt(token, master_key='wrong')


@pytest.mark.parametrize('token', ['plain text', 'a:b:c', 'v2:x:y:z', 'v1:!!:??:**'])
def test_malformed_tokens_raise_instead_of_passing_through(token):
    with pytest.raises(DecryptionError):
        encryption.decrypt(token, master_key='k')


def test_empty_input_decrypts_to_empty_string():
    assert encryption.decrypt('', master_key='k') == ''
    assert encryption.decrypt(None, master_key='k') == ''


def test_missing_master_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        encryption.encrypt('x', master_key='')


def test_default_key_comes_from_settings():
    token = encryption.encrypt('from-settings')
    assert encryption.decrypt(token) == 'from-settings'
