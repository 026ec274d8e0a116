"""
Stable integer code tables for stored events.

Stored rows pin the meaning of every integer permanently. Adding a member is
a compatible change; renumbering or removing one is not, even when a client
stops emitting it.

EventType families (hundreds digit selects the family):

    10xx  user account           1000-1007
    11xx  cipher (vault item)    1100-1114
    13xx  collection             1300-1302
    14xx  group                  1400-1402
    15xx  organization user      1500-1504
    16xx  organization           1600-1602
"""

from __future__ import annotations

from enum import IntEnum


class EventType(IntEnum):
    # User
    USER_LOGGED_IN = 1000
    USER_CHANGED_PASSWORD = 1001
    USER_UPDATED_2FA = 1002
    USER_DISABLED_2FA = 1003
    USER_RECOVERED_2FA = 1004
    USER_FAILED_LOG_IN = 1005
    USER_FAILED_LOG_IN_2FA = 1006
    USER_CLIENT_EXPORTED_VAULT = 1007

    # Cipher
    CIPHER_CREATED = 1100
    CIPHER_UPDATED = 1101
    CIPHER_DELETED = 1102
    CIPHER_ATTACHMENT_CREATED = 1103
    CIPHER_ATTACHMENT_DELETED = 1104
    CIPHER_SHARED = 1105
    CIPHER_UPDATED_COLLECTIONS = 1106
    CIPHER_CLIENT_VIEWED = 1107
    CIPHER_CLIENT_TOGGLED_PASSWORD_VISIBLE = 1108
    CIPHER_CLIENT_TOGGLED_HIDDEN_FIELD_VISIBLE = 1109
    CIPHER_CLIENT_TOGGLED_CARD_CODE_VISIBLE = 1110
    CIPHER_CLIENT_COPIED_PASSWORD = 1111
    CIPHER_CLIENT_COPIED_HIDDEN_FIELD = 1112
    CIPHER_CLIENT_COPIED_CARD_CODE = 1113
    CIPHER_CLIENT_AUTOFILLED = 1114

    # Collection
    COLLECTION_CREATED = 1300
    COLLECTION_UPDATED = 1301
    COLLECTION_DELETED = 1302

    # Group
    GROUP_CREATED = 1400
    GROUP_UPDATED = 1401
    GROUP_DELETED = 1402

    # Organization user
    ORGANIZATION_USER_INVITED = 1500
    ORGANIZATION_USER_CONFIRMED = 1501
    ORGANIZATION_USER_UPDATED = 1502
    ORGANIZATION_USER_REMOVED = 1503
    ORGANIZATION_USER_UPDATED_GROUPS = 1504

    # Organization
    ORGANIZATION_UPDATED = 1600
    ORGANIZATION_PURGED_VAULT = 1601
    ORGANIZATION_CLIENT_EXPORTED_VAULT = 1602

    @classmethod
    def is_known(cls, code: int) -> bool:
        return code in cls._value2member_map_


class DeviceType(IntEnum):
    """Client classes that originate events. Unlisted codes are still stored."""

    ANDROID = 0
    IOS = 1
    CHROME_EXTENSION = 2
    FIREFOX_EXTENSION = 3
    OPERA_EXTENSION = 4
    EDGE_EXTENSION = 5
    WINDOWS_DESKTOP = 6
    MACOS_DESKTOP = 7
    LINUX_DESKTOP = 8
    CHROME_BROWSER = 9
    FIREFOX_BROWSER = 10
    OPERA_BROWSER = 11
    EDGE_BROWSER = 12
    IE_BROWSER = 13
    UNKNOWN_BROWSER = 14
    ANDROID_AMAZON = 15
    UWP = 16
    SAFARI_BROWSER = 17
    VIVALDI_BROWSER = 18
    VIVALDI_EXTENSION = 19
    SAFARI_EXTENSION = 20
