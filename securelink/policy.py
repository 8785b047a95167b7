"""
Endpoint encryption policy.

Maps API paths to whether they use the encrypted envelope convention.
The table is built once from the defaults below plus
``SECURE_CHANNEL['ENDPOINTS']`` and is read-only afterwards; the server
middleware and the client dispatcher consult the same table.  Paths not
listed are plain.
"""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union
from urllib.parse import urlsplit

from securelink.conf import secure_setting

PRIORITIES = ('high', 'medium', 'low')


@dataclass(frozen=True)
class EndpointPolicy:
    path: str
    encrypted: bool
    priority: str = 'low'
    description: str = ''
    migrated: bool = False


def _entry(path, encrypted, priority, description, migrated=None):
    return EndpointPolicy(path=path, encrypted=encrypted, priority=priority, description=description,
                          migrated=encrypted if migrated is None else migrated)


DEFAULT_ENDPOINTS = (
    # high: credentials and personal data
    _entry('/api/user/get-profile', True, 'high', 'User profile data - personal information'),
    _entry('/api/user/update-profile', True, 'high', 'User profile updates'),
    _entry('/api/user/login', True, 'high', 'User authentication - credentials'),
    _entry('/api/user/register', True, 'high', 'User registration - credentials and personal data'),
    # medium: medical and appointment data
    _entry('/api/user/book-appointment', True, 'medium', 'Appointment booking'),
    _entry('/api/user/appointments', True, 'medium', 'User appointments list'),
    _entry('/api/user/cancel-appointment', True, 'medium', 'Appointment cancellation'),
    _entry('/api/doctor/appointments', True, 'medium', 'Doctor appointments - patient data'),
    _entry('/api/doctor/profile', True, 'medium', 'Doctor profile data'),
    _entry('/api/doctor/update-profile', True, 'medium', 'Doctor profile updates'),
    _entry('/api/doctor/dashboard', True, 'medium', 'Doctor dashboard data'),
    _entry('/api/doctor/cancel-appointment', True, 'medium', 'Doctor cancel appointment'),
    _entry('/api/doctor/complete-appointment', True, 'medium', 'Doctor complete appointment'),
    _entry('/api/admin/login', True, 'medium', 'Admin authentication'),
    _entry('/api/admin/all-doctors', True, 'medium', 'All doctors data'),
    _entry('/api/admin/appointments', True, 'medium', 'All appointments data'),
    _entry('/api/admin/dashboard', True, 'medium', 'Admin dashboard statistics'),
    _entry('/api/admin/change-availability', True, 'medium', 'Change doctor availability'),
    _entry('/api/admin/cancel-appointment', True, 'medium', 'Admin cancel appointment'),
    # low: public or less sensitive data
    _entry('/api/doctor/list', True, 'low', 'Public doctors list'),
    _entry('/api/doctor/login', True, 'low', 'Doctor authentication'),
    _entry('/api/vitals/latest', True, 'low', 'Latest vitals data'),
    # multipart uploads and payment callbacks stay plain
    _entry('/api/admin/add-doctor', False, 'low', 'Add new doctor - file upload'),
    _entry('/api/user/verifyRazorpay', False, 'low', 'Payment verification'),
    _entry('/api/secure/dummy-data', True, 'high', 'Test encrypted endpoint'),
)


def normalize_path(path: str) -> str:
    """Strip scheme/host, query string and trailing slash from a path or URL."""
    path = urlsplit(path or '').path or '/'
    if not path.startswith('/'):
        path = '/' + path
    if len(path) > 1:
        path = path.rstrip('/')
    return path


class EndpointPolicyTable:
    def __init__(self, entries: Iterable[EndpointPolicy]):
        table = {}
        for entry in entries:
            if entry.priority not in PRIORITIES:
                raise ValueError(f'Unknown priority {entry.priority!r} for {entry.path}')
            table[normalize_path(entry.path)] = entry
        self._entries: Mapping[str, EndpointPolicy] = MappingProxyType(table)

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Union[bool, dict]]] = None,
                       base: Iterable[EndpointPolicy] = DEFAULT_ENDPOINTS) -> 'EndpointPolicyTable':
        """Defaults plus overrides; an override is a bool or a dict of EndpointPolicy fields."""
        merged = {normalize_path(e.path): e for e in base}
        for path, value in (overrides or {}).items():
            key = normalize_path(path)
            current = merged.get(key)
            if isinstance(value, bool):
                fields = {'encrypted': value}
            elif isinstance(value, dict):
                fields = dict(value)
            else:
                raise TypeError(f'Policy override for {path} must be a bool or dict')
            fields.setdefault('encrypted', current.encrypted if current else False)
            fields.setdefault('priority', current.priority if current else 'low')
            fields.setdefault('description', current.description if current else '')
            fields.setdefault('migrated', fields['encrypted'])
            merged[key] = EndpointPolicy(path=key, **fields)
        return cls(merged.values())

    def get(self, path: str) -> Optional[EndpointPolicy]:
        return self._entries.get(normalize_path(path))

    def is_encrypted(self, path: str) -> bool:
        entry = self.get(path)
        return bool(entry and entry.encrypted)

    def by_priority(self, priority: str) -> list[EndpointPolicy]:
        return [e for e in self._entries.values() if e.priority == priority]

    def migration_status(self) -> dict:
        total = len(self._entries)
        migrated = sum(1 for e in self._entries.values() if e.migrated)
        encrypted = sum(1 for e in self._entries.values() if e.encrypted)
        return {
            'total': total,
            'migrated': migrated,
            'encrypted': encrypted,
            'progress': (migrated / total * 100) if total else 0.0,
        }

    def __contains__(self, path: str) -> bool:
        return normalize_path(path) in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


_table: Optional[EndpointPolicyTable] = None


def get_policy_table() -> EndpointPolicyTable:
    global _table
    if _table is None:
        _table = EndpointPolicyTable.from_overrides(secure_setting('ENDPOINTS'))
    return _table


def reset_policy_table() -> None:
    global _table
    _table = None
