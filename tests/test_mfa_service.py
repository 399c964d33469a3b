"""Ciclo de vida del secreto: NONE -> PENDING -> ENABLED -> DISABLED."""
import pyotp
import pytest
from sqlalchemy import func, select

from admin_mfa.core.errors import (
    AlreadyEnabled, InvalidCode, MfaGloballyDisabled, MfaNotEnabled, NoPendingEnrollment,
)
from admin_mfa.models.mfa import MfaPendingSecret, MfaSecret
from admin_mfa.services import mfa, mfa_config
from tests.conftest import enroll, wrong_code

pytestmark = pytest.mark.usefixtures("mfa_on")


async def _pending(db, user_id):
    res = await db.execute(
        select(MfaPendingSecret)
        .where(MfaPendingSecret.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def _secret(db, user_id):
    res = await db.execute(
        select(MfaSecret)
        .where(MfaSecret.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def test_status_is_none_before_enrollment(db, admin_user):
    assert await mfa.status(db, admin_user.id) is None


async def test_begin_enrollment_creates_pending(db, admin_user):
    secret = await mfa.begin_enrollment(db, admin_user.id)

    pending = await _pending(db, admin_user.id)
    assert pending is not None
    assert pending.secret == secret
    assert await _secret(db, admin_user.id) is None
    # PENDING no se expone hacia afuera
    assert await mfa.status(db, admin_user.id) is None


async def test_begin_enrollment_twice_keeps_one_pending(db, admin_user):
    first = await mfa.begin_enrollment(db, admin_user.id)
    second = await mfa.begin_enrollment(db, admin_user.id)

    assert first != second
    count = await db.scalar(select(func.count()).select_from(MfaPendingSecret))
    assert count == 1
    assert (await _pending(db, admin_user.id)).secret == second


async def test_enrollment_round_trip(db, admin_user):
    secret, codes = await enroll(db, admin_user.id)

    assert len(codes) == 8
    assert len(set(codes)) == 8
    assert await _pending(db, admin_user.id) is None

    record = await _secret(db, admin_user.id)
    assert record.enabled is True
    assert record.secret == secret
    assert len(record.recovery_codes) == 8
    # solo hashes: los códigos en texto plano no se pueden volver a leer
    for code in codes:
        assert code not in record.recovery_codes
    assert all(h.startswith("$2b$") for h in record.recovery_codes)

    assert await mfa.status(db, admin_user.id) == "full"


async def test_begin_enrollment_when_enabled_fails(db, admin_user):
    # el rollback del error expira admin_user: el id se lee antes
    user_id = admin_user.id
    await enroll(db, user_id)
    with pytest.raises(AlreadyEnabled):
        await mfa.begin_enrollment(db, user_id)
    assert await _pending(db, user_id) is None
    assert await mfa.status(db, user_id) == "full"


async def test_confirm_without_pending(db, admin_user):
    with pytest.raises(NoPendingEnrollment):
        await mfa.confirm_enrollment(db, admin_user.id, "123456")


async def test_confirm_with_invalid_code_keeps_pending(db, admin_user):
    user_id = admin_user.id
    secret = await mfa.begin_enrollment(db, user_id)

    with pytest.raises(InvalidCode):
        await mfa.confirm_enrollment(db, user_id, wrong_code(secret))

    assert (await _pending(db, user_id)).secret == secret
    assert await _secret(db, user_id) is None


async def test_cancel_enrollment(db, admin_user):
    await mfa.begin_enrollment(db, admin_user.id)
    await mfa.cancel_enrollment(db, admin_user.id)

    assert await _pending(db, admin_user.id) is None
    with pytest.raises(NoPendingEnrollment):
        await mfa.cancel_enrollment(db, admin_user.id)


async def test_discard_enrollment_is_silent(db, admin_user):
    user_id = admin_user.id
    assert await mfa.discard_enrollment(db, user_id) is False
    await mfa.begin_enrollment(db, user_id)
    assert await mfa.discard_enrollment(db, user_id) is True
    assert await _pending(db, user_id) is None


async def test_session_objects_usable_after_refresh_following_domain_error(db, admin_user):
    with pytest.raises(NoPendingEnrollment):
        await mfa.cancel_enrollment(db, admin_user.id)
    await db.refresh(admin_user)
    assert admin_user.email == "admin@example.com"


async def test_enrollment_refused_while_globally_disabled(db, admin_user):
    user_id = admin_user.id
    await mfa_config.update_config(db, {"enabled": False})

    with pytest.raises(MfaGloballyDisabled):
        await mfa.begin_enrollment(db, user_id)
    assert await _pending(db, user_id) is None


async def test_confirm_refused_once_globally_disabled(db, admin_user):
    user_id = admin_user.id
    secret = await mfa.begin_enrollment(db, user_id)
    await mfa_config.update_config(db, {"enabled": False})

    with pytest.raises(MfaGloballyDisabled):
        await mfa.confirm_enrollment(db, user_id, pyotp.TOTP(secret).now())
    assert await _secret(db, user_id) is None
    assert await mfa.status(db, user_id) is None


async def test_verify_code_accepts_totp(db, admin_user):
    secret, _ = await enroll(db, admin_user.id)
    assert await mfa.verify_code(db, admin_user.id, pyotp.TOTP(secret).now())
    assert not await mfa.verify_code(db, admin_user.id, wrong_code(secret))


async def test_verify_code_falls_back_to_recovery_code(db, admin_user):
    _, codes = await enroll(db, admin_user.id)

    assert await mfa.verify_code(db, admin_user.id, codes[3])
    assert not await mfa.verify_code(db, admin_user.id, codes[3])
    assert len((await _secret(db, admin_user.id)).recovery_codes) == 7


async def test_verify_code_without_secret(db, admin_user):
    assert not await mfa.verify_code(db, admin_user.id, "123456")
    assert not await mfa.verify_code(db, admin_user.id, "")


async def test_disable_with_invalid_code_keeps_secret(db, admin_user):
    secret, _ = await enroll(db, admin_user.id)

    with pytest.raises(InvalidCode):
        await mfa.disable(db, admin_user.id, wrong_code(secret))

    record = await _secret(db, admin_user.id)
    assert record.enabled is True
    assert await mfa.status(db, admin_user.id) == "full"


async def test_disable_when_not_enabled(db, admin_user):
    with pytest.raises(MfaNotEnabled):
        await mfa.disable(db, admin_user.id, "123456")


async def test_disable_with_totp(db, admin_user):
    secret, codes = await enroll(db, admin_user.id)

    await mfa.disable(db, admin_user.id, pyotp.TOTP(secret).now())

    record = await _secret(db, admin_user.id)
    assert record.enabled is False
    assert record.recovery_codes == []
    assert await mfa.status(db, admin_user.id) is None
    # los recovery codes del alta anterior ya no sirven
    assert not await mfa.verify_code(db, admin_user.id, codes[0])
    with pytest.raises(MfaNotEnabled):
        await mfa.disable(db, admin_user.id, pyotp.TOTP(secret).now())


async def test_disable_with_recovery_code(db, admin_user):
    _, codes = await enroll(db, admin_user.id)
    await mfa.disable(db, admin_user.id, codes[0])
    assert await mfa.status(db, admin_user.id) is None


async def test_reenrollment_rotates_secret(db, admin_user):
    old_secret, old_codes = await enroll(db, admin_user.id)
    await mfa.disable(db, admin_user.id, pyotp.TOTP(old_secret).now())

    new_secret, new_codes = await enroll(db, admin_user.id)

    assert new_secret != old_secret
    record = await _secret(db, admin_user.id)
    assert record.enabled is True
    assert record.secret == new_secret
    assert len(record.recovery_codes) == 8
    assert not set(old_codes) & set(new_codes)
