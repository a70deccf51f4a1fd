"""
Tests for the pairing code store (server side).
"""

import pytest

from autoledger.pairing import (
    CODE_ALPHABET,
    BadRequestError,
    CodeAlreadyUsedError,
    CodeExpiredError,
    CodeNotFoundError,
    InMemorySyncPackageRepository,
    PairingCodeStore,
    PairingError,
    generate_code,
    normalize_code,
)


@pytest.fixture
def repository() -> InMemorySyncPackageRepository:
    return InMemorySyncPackageRepository()


@pytest.fixture
def code_store(repository, pairing_settings, clock) -> PairingCodeStore:
    return PairingCodeStore(repository, pairing_settings, clock)


class TestCodeGeneration:
    """Tests for pairing code shape."""

    def test_length_and_alphabet(self):
        """Test that codes are 7 characters from the restricted alphabet."""
        for _ in range(200):
            code = generate_code()
            assert len(code) == 7
            assert set(code) <= set(CODE_ALPHABET)

    def test_alphabet_has_no_lookalikes(self):
        """Test that ambiguous characters are excluded."""
        for ambiguous in "01IO":
            assert ambiguous not in CODE_ALPHABET

    def test_normalize(self):
        """Test case and whitespace tolerance."""
        assert normalize_code("  abcd234 ") == "ABCD234"
        assert normalize_code(None) == ""


class TestUpload:
    """Tests for parking a payload."""

    @pytest.mark.asyncio
    async def test_upload_stores_package(self, code_store, repository, clock):
        """Test that upload persists an unused package stamped with server time."""
        code = await code_store.upload("encrypted-blob")

        package = await repository.get(code)
        assert package.payload == "encrypted-blob"
        assert package.is_used is False
        assert package.created_at == clock.now

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, "", 42])
    async def test_missing_payload(self, code_store, repository, payload):
        """Test that a bad payload is refused before a code is issued."""
        with pytest.raises(BadRequestError):
            await code_store.upload(payload)
        assert len(repository) == 0

    @pytest.mark.asyncio
    async def test_collision_regenerates(self, repository, pairing_settings, clock):
        """Test that an existing code is never reissued."""
        codes = iter(["AAAAAAA", "AAAAAAA", "BBBBBBB"])
        store = PairingCodeStore(
            repository, pairing_settings, clock,
            code_generator=lambda length: next(codes),
        )

        assert await store.upload("first") == "AAAAAAA"
        assert await store.upload("second") == "BBBBBBB"
        assert (await repository.get("AAAAAAA")).payload == "first"

    @pytest.mark.asyncio
    async def test_gives_up_when_no_code_is_free(self, repository, pairing_settings, clock):
        """Test that an exhausted generator is an error, not a loop."""
        store = PairingCodeStore(
            repository, pairing_settings, clock,
            code_generator=lambda length: "AAAAAAA",
        )
        await store.upload("first")
        with pytest.raises(PairingError):
            await store.upload("second")


class TestDownload:
    """Tests for redeeming a code."""

    @pytest.mark.asyncio
    async def test_download_once(self, code_store):
        """Test success then conflict."""
        code = await code_store.upload("blob")

        assert await code_store.download(code) == "blob"
        with pytest.raises(CodeAlreadyUsedError):
            await code_store.download(code)

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(self, code_store):
        """Test that a lowercased, padded code still works."""
        code = await code_store.upload("blob")
        assert await code_store.download(f" {code.lower()} ") == "blob"

    @pytest.mark.asyncio
    async def test_unknown_code(self, code_store):
        """Test that an unknown code is not found."""
        with pytest.raises(CodeNotFoundError):
            await code_store.download("ZZZZZZZ")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [None, "", "   "])
    async def test_missing_code(self, code_store, code):
        """Test that a missing code is a bad request."""
        with pytest.raises(BadRequestError):
            await code_store.download(code)

    @pytest.mark.asyncio
    async def test_valid_at_exactly_ttl(self, code_store, clock):
        """Test that the window is inclusive of its last second."""
        code = await code_store.upload("blob")
        clock.advance(180)
        assert await code_store.download(code) == "blob"

    @pytest.mark.asyncio
    async def test_expired_after_ttl(self, code_store, repository, clock):
        """Test that a code past 3 minutes is expired and stays unused."""
        code = await code_store.upload("blob")
        clock.advance(181)

        with pytest.raises(CodeExpiredError):
            await code_store.download(code)
        assert (await repository.get(code)).is_used is False

    @pytest.mark.asyncio
    async def test_expiry_is_permanent(self, code_store, clock):
        """Test that an expired code never comes back."""
        code = await code_store.upload("blob")
        clock.advance(600)
        for _ in range(2):
            with pytest.raises(CodeExpiredError):
                await code_store.download(code)


class TestErrorStatuses:
    """Tests for the HTTP status carried by each error."""

    def test_statuses(self):
        """Test the taxonomy's status table."""
        assert BadRequestError.http_status == 400
        assert CodeNotFoundError.http_status == 404
        assert CodeAlreadyUsedError.http_status == 409
        assert CodeExpiredError.http_status == 410

    def test_default_messages(self):
        """Test that errors carry a user-facing message."""
        assert CodeExpiredError().message == "코드가 만료되었습니다."
        assert CodeNotFoundError("custom").message == "custom"
        assert BadRequestError().message == "잘못된 요청입니다."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
