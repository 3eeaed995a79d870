# JUAKALI/backend/tests/test_encryption.py : account number encryption

from juakali.encryption import AccountCipher, mask_account


class TestAccountCipher:
    def test_round_trip(self):
        cipher = AccountCipher("a-test-key")
        token = cipher.encrypt("0170123456789")
        assert token != "0170123456789"
        assert cipher.decrypt(token) == "0170123456789"

    def test_tokens_are_not_deterministic(self):
        cipher = AccountCipher("a-test-key")
        assert cipher.encrypt("0170123456789") != cipher.encrypt("0170123456789")

    def test_wrong_key_does_not_decrypt(self):
        token = AccountCipher("a-test-key").encrypt("0170123456789")
        assert AccountCipher("another-key").decrypt(token) is None


def test_mask_account():
    assert mask_account("0170123456789") == "*********6789"
    assert mask_account("1234") == "1234"
    assert mask_account(None) is None
