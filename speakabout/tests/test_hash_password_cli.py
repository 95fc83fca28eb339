"""
Tests for the speakabout-hash-password command.
"""

import pytest

from speakabout.auth import hash_password as hash_cli
from speakabout.auth.auth_services import auth_service
from speakabout.core.security import verify_password


class TestHashPasswordCli:
    def test_prints_verifiable_credential(self, capsys):
        assert hash_cli.main(["N3w-Passw0rd"]) == 0

        stored = capsys.readouterr().out.strip()
        salt, key = stored.split(":")
        assert len(salt) == 32
        assert len(key) == 128
        assert verify_password("N3w-Passw0rd", stored) is True

    @pytest.mark.asyncio
    async def test_output_works_as_admin_setting(self, capsys, monkeypatch, admin_credentials: dict):
        hash_cli.main(["N3w-Passw0rd"])
        monkeypatch.setenv("ADMIN_PASSWORD_HASH", capsys.readouterr().out.strip())

        admin = await auth_service.authenticate_admin(admin_credentials["email"], "N3w-Passw0rd")
        assert admin is not None
        assert admin["email"] == admin_credentials["email"]

    def test_weak_password_is_rejected(self, capsys):
        assert hash_cli.main(["abcdefg1"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Password must contain at least one uppercase letter" in captured.err

    def test_policy_reports_length_first(self, capsys):
        assert hash_cli.main(["a"]) == 1
        assert "Password must be at least 8 characters long" in capsys.readouterr().err

    def test_prompts_when_password_omitted(self, capsys, monkeypatch):
        answers = iter(["N3w-Passw0rd", "N3w-Passw0rd"])
        monkeypatch.setattr(hash_cli.getpass, "getpass", lambda prompt: next(answers))

        assert hash_cli.main([]) == 0
        assert verify_password("N3w-Passw0rd", capsys.readouterr().out.strip()) is True

    def test_mismatched_prompt_answers(self, capsys, monkeypatch):
        answers = iter(["N3w-Passw0rd", "Other-Passw0rd"])
        monkeypatch.setattr(hash_cli.getpass, "getpass", lambda prompt: next(answers))

        assert hash_cli.main([]) == 1
        assert "Passwords do not match" in capsys.readouterr().err
