from __future__ import annotations

import pytest

from actions.decrypt import decrypt, get_decryption_signature, validate_handle
from actions.encrypt import encrypt, encrypt_with, get_encryption_method, to_hex
from common.errors import ErrorCode, SessionError
from common.storage import MemoryStore, Storage
from instance.probe import RelayerMetadata
from instance.simulated import SimulatedInstance
from state.models import SessionStatus
from state.session import SessionStore


USER = "0x" + "12" * 20
CONTRACT = "0x" + "c0" * 20
OTHER_CONTRACT = "0x" + "d0" * 20


class _FakeSigner:
    def __init__(self):
        self.calls = 0

    async def get_address(self):
        return USER

    async def sign_typed_data(self, domain, types, message):
        self.calls += 1
        return "0x" + "ab" * 65


@pytest.fixture()
def instance() -> SimulatedInstance:
    metadata = RelayerMetadata(
        acl_address="0x50157cffd6bbfa2dece204a89ec419c23ef5755d",
        input_verifier_address="0x901f8942346f7ab3a01f6d7613119bca447bb030",
        kms_verifier_address="0x1364cbbf2cdf5032c47d8226a6f6fbd2afcdacac",
    )
    return SimulatedInstance(network_id=31337, rpc_url="http://localhost:8545", metadata=metadata)


@pytest.fixture()
def session(instance) -> SessionStore:
    s = SessionStore([31337], storage=Storage(MemoryStore()))
    s.set_state(lambda st: st.evolve(instance=instance, status=SessionStatus.READY))
    return s


@pytest.mark.asyncio
async def test_encrypt_then_decrypt_roundtrip(session, instance):
    encrypted = await encrypt(instance, CONTRACT, USER, [("euint8", 42), ("ebool", True), ("eaddress", USER)])

    assert len(encrypted["handles"]) == 3
    assert all(len(h) == 32 for h in encrypted["handles"])
    assert isinstance(encrypted["inputProof"], bytes)

    handles = [to_hex(h) for h in encrypted["handles"]]
    signer = _FakeSigner()
    result = await decrypt(
        session,
        instance,
        [{"handle": h, "contractAddress": CONTRACT} for h in handles],
        signer,
    )

    assert result[handles[0]] == 42
    assert result[handles[1]] is True
    assert result[handles[2]].lower() == USER
    assert session.state.error is None


@pytest.mark.asyncio
async def test_decrypt_reuses_stored_authorization(session, instance):
    encrypted = await encrypt(instance, CONTRACT, USER, [("euint32", 7)])
    req = [{"handle": to_hex(encrypted["handles"][0]), "contractAddress": CONTRACT}]
    signer = _FakeSigner()

    await decrypt(session, instance, req, signer)
    await decrypt(session, instance, req, signer)

    assert signer.calls == 1
    assert any(k.startswith("fhevm.decryption-signature:") for k in session.storage.store.keys())


@pytest.mark.asyncio
async def test_decrypt_with_no_requests_signs_nothing(session, instance):
    signer = _FakeSigner()
    assert await decrypt(session, instance, [], signer) == {}
    assert signer.calls == 0


@pytest.mark.asyncio
async def test_invalid_handle_is_recorded_and_instance_kept(session, instance):
    with pytest.raises(SessionError) as ei:
        await decrypt(session, instance, [{"handle": "not-hex", "contractAddress": CONTRACT}], _FakeSigner())

    assert ei.value.code is ErrorCode.INVALID_HANDLE
    assert session.state.error is ei.value
    assert session.state.status is SessionStatus.READY
    assert session.state.instance is instance


@pytest.mark.asyncio
async def test_unknown_handle_is_decrypt_error(session, instance):
    with pytest.raises(SessionError) as ei:
        await decrypt(session, instance, [{"handle": "0x" + "00" * 32, "contractAddress": CONTRACT}], _FakeSigner())

    assert ei.value.code is ErrorCode.DECRYPT_ERROR
    assert ei.value.message.startswith("KeyError")
    assert session.state.error is ei.value


@pytest.mark.asyncio
async def test_handle_from_other_contract_is_rejected(session, instance):
    encrypted = await encrypt(instance, CONTRACT, USER, [("euint64", 1)])
    with pytest.raises(SessionError) as ei:
        await decrypt(
            session,
            instance,
            [{"handle": to_hex(encrypted["handles"][0]), "contractAddress": OTHER_CONTRACT}],
            _FakeSigner(),
        )
    assert ei.value.code is ErrorCode.DECRYPT_ERROR


@pytest.mark.asyncio
async def test_get_decryption_signature_covers_contracts(instance):
    sig = await get_decryption_signature(instance, [CONTRACT, OTHER_CONTRACT], _FakeSigner())
    assert sig.covers([CONTRACT, OTHER_CONTRACT])


@pytest.mark.asyncio
async def test_encrypt_rejects_unknown_type_and_bad_values(instance):
    with pytest.raises(SessionError) as ei:
        await encrypt(instance, CONTRACT, USER, [("euint7", 1)])
    assert ei.value.code is ErrorCode.ENCRYPT_ERROR

    with pytest.raises(SessionError) as ei:
        await encrypt(instance, CONTRACT, USER, [("euint8", 256)])
    assert ei.value.code is ErrorCode.ENCRYPT_ERROR

    with pytest.raises(SessionError):
        await encrypt(instance, CONTRACT, USER, [("euint16", "12")])


@pytest.mark.asyncio
async def test_encrypt_with_builder_callback(instance):
    encrypted = await encrypt_with(instance, CONTRACT, USER, lambda b: b.add32(7).add_address(USER))
    assert len(encrypted["handles"]) == 2


def test_encryption_method_map():
    assert get_encryption_method("ebool") == "add_bool"
    assert get_encryption_method("euint256") == "add256"
    assert get_encryption_method("eaddress") == "add_address"


def test_to_hex():
    assert to_hex(b"\x01\xff") == "0x01ff"
    assert to_hex("abcd") == "0xabcd"
    assert to_hex("0xabcd") == "0xabcd"


def test_validate_handle():
    validate_handle("0x" + "ab" * 32)
    validate_handle("0x1234")  # short handles only warn
    for bad in (None, "", "1234", "0xzz"):
        with pytest.raises(SessionError):
            validate_handle(bad)
