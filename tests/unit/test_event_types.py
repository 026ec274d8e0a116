"""Unit tests pinning the stored integer meaning of event and device codes."""
import pytest

from eventlog.schemas.event_types import DeviceType, EventType


@pytest.mark.parametrize(
    ("member", "code"),
    [
        (EventType.USER_LOGGED_IN, 1000),
        (EventType.USER_CLIENT_EXPORTED_VAULT, 1007),
        (EventType.CIPHER_CREATED, 1100),
        (EventType.CIPHER_CLIENT_AUTOFILLED, 1114),
        (EventType.COLLECTION_DELETED, 1302),
        (EventType.GROUP_CREATED, 1400),
        (EventType.ORGANIZATION_USER_INVITED, 1500),
        (EventType.ORGANIZATION_USER_UPDATED_GROUPS, 1504),
        (EventType.ORGANIZATION_PURGED_VAULT, 1601),
    ],
)
def test_event_type_codes_are_stable(member, code):
    assert int(member) == code


def test_event_type_codes_are_unique():
    codes = [m.value for m in EventType]
    assert len(codes) == len(set(codes))


def test_is_known():
    assert EventType.is_known(1101)
    assert not EventType.is_known(1200)


def test_device_type_codes_are_stable():
    assert DeviceType.ANDROID == 0
    assert DeviceType.CHROME_BROWSER == 9
    assert DeviceType.SAFARI_EXTENSION == 20
