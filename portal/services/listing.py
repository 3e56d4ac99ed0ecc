"""
Client-side list plumbing shared by every directory page.

Records arrive already fetched from the backend; this module searches,
filters, sorts and slices them.  Filtering and sorting always happen
before pagination.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

ASC = 'asc'
DESC = 'desc'

TEXT = 'text'
NUMBER = 'number'
BOOL = 'bool'

# Filter values meaning "do not filter"
ANY_VALUES = frozenset({'', 'all', None})
TRUTHY = frozenset({'1', 'true', 'yes', 'required'})


def _lookup(record: dict, path: str) -> Any:
    """Resolve ``a.b.c`` style paths inside nested dicts."""
    value: Any = record
    for part in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


@dataclass(frozen=True)
class ListSpec:
    """Search, filter and sort configuration for one resource."""
    search_fields: tuple[str, ...]
    # query parameter -> record field
    filters: dict[str, str] = field(default_factory=dict)
    # sort key -> (record field, kind)
    sorts: dict[str, tuple[str, str]] = field(default_factory=dict)
    default_sort: Optional[str] = None
    default_direction: str = ASC


@dataclass(frozen=True)
class ListState:
    search: str = ''
    filters: dict[str, Any] = field(default_factory=dict)
    sort: Optional[str] = None
    direction: Optional[str] = None
    page: int = 1
    page_size: int = 10

    def with_search(self, text: str) -> 'ListState':
        return replace(self, search=text or '', page=1)

    def with_filter(self, name: str, value: Any) -> 'ListState':
        filters = dict(self.filters)
        filters[name] = value
        return replace(self, filters=filters, page=1)

    def with_sort(self, key: str) -> 'ListState':
        """Select a sort field; selecting the current one flips direction."""
        if key == self.sort:
            return replace(self, direction=DESC if (self.direction or ASC) == ASC else ASC)
        return replace(self, sort=key, direction=ASC)

    def with_page(self, page: int) -> 'ListState':
        return replace(self, page=max(1, int(page)))


@dataclass
class Page:
    items: list[dict]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size)) if self.page_size else 1

    def as_dict(self) -> dict:
        return {
            'data': self.items,
            'pagination': {
                'total': self.total,
                'page': self.page,
                'pageSize': self.page_size,
                'totalPages': self.total_pages,
            },
        }


def matches_search(record: dict, text: str, fields: Iterable[str]) -> bool:
    needle = (text or '').strip().casefold()
    if not needle:
        return True
    for name in fields:
        value = _lookup(record, name)
        if value is not None and needle in str(value).casefold():
            return True
    return False


def matches_filters(record: dict, filters: dict[str, Any], spec: ListSpec) -> bool:
    for param, wanted in filters.items():
        if wanted in ANY_VALUES or param not in spec.filters:
            continue
        value = _lookup(record, spec.filters[param])
        if isinstance(value, bool):
            if value != (str(wanted).lower() in TRUTHY):
                return False
        elif str(value if value is not None else '').casefold() != str(wanted).casefold():
            return False
    return True


def _sort_key(kind: str, value: Any):
    # Missing values always sort last regardless of direction
    if value is None or value == '':
        return (1, 0)
    if kind == NUMBER:
        try:
            return (0, float(value))
        except (TypeError, ValueError):
            return (1, 0)
    if kind == BOOL:
        return (0, bool(value))
    return (0, str(value).casefold())


def sort_records(records: list[dict], spec: ListSpec, key: Optional[str], direction: str) -> list[dict]:
    key = key if key in spec.sorts else spec.default_sort
    if not key:
        return list(records)
    path, kind = spec.sorts[key]
    present = [r for r in records if _sort_key(kind, _lookup(r, path))[0] == 0]
    missing = [r for r in records if _sort_key(kind, _lookup(r, path))[0] == 1]
    present.sort(key=lambda r: _sort_key(kind, _lookup(r, path)), reverse=(direction == DESC))
    return present + missing


def paginate(records: list[dict], page: int, page_size: int) -> Page:
    total = len(records)
    page_size = max(1, page_size)
    last = max(1, math.ceil(total / page_size))
    page = min(max(1, page), last)
    start = (page - 1) * page_size
    return Page(items=records[start:start + page_size], total=total, page=page, page_size=page_size)


def apply(records: Iterable[dict], spec: ListSpec, state: ListState) -> Page:
    """Run search → filters → sort → page over ``records``."""
    rows = [
        r for r in records
        if isinstance(r, dict)
        and matches_search(r, state.search, spec.search_fields)
        and matches_filters(r, state.filters, spec)
    ]
    rows = sort_records(rows, spec, state.sort, state.direction or spec.default_direction)
    return paginate(rows, state.page, state.page_size)


# Per-resource configuration, mirroring the dashboard pages.
LIST_SPECS: dict[str, ListSpec] = {
    'appointments': ListSpec(
        search_fields=(
            'patient.firstName', 'patient.lastName', 'doctor.firstName', 'doctor.lastName', 'appointmentId',
        ),
        filters={'status': 'status', 'type': 'type', 'doctorId': 'doctor.id'},
        sorts={
            'date': ('appointmentDateTime', TEXT),
            'patient': ('patient.lastName', TEXT),
            'doctor': ('doctor.lastName', TEXT),
            'status': ('status', TEXT),
        },
        default_sort='date',
    ),
    'patients': ListSpec(
        search_fields=('name', 'patientId', 'email', 'phone'),
        filters={'status': 'status', 'gender': 'gender'},
        sorts={
            'name': ('name', TEXT),
            'patientId': ('patientId', TEXT),
            'age': ('age', NUMBER),
            'lastVisit': ('lastVisit', TEXT),
        },
        default_sort='name',
    ),
    'doctors': ListSpec(
        search_fields=('firstName', 'lastName', 'email', 'specialization'),
        filters={'status': 'status', 'specialty': 'specialization'},
        sorts={
            'firstName': ('firstName', TEXT),
            'lastName': ('lastName', TEXT),
            'specialization': ('specialization', TEXT),
            'active': ('active', BOOL),
        },
        default_sort='firstName',
    ),
    'users': ListSpec(
        search_fields=('firstName', 'lastName', 'email'),
        filters={'role': 'role', 'active': 'active'},
        sorts={
            'firstName': ('firstName', TEXT),
            'email': ('email', TEXT),
            'role': ('role', TEXT),
            'active': ('active', BOOL),
        },
        default_sort='firstName',
    ),
    'medicines': ListSpec(
        search_fields=('name', 'id', 'company'),
        filters={
            'category': 'category',
            'stock': 'stockStatus',
            'prescription': 'requiresPrescription',
        },
        sorts={
            'name': ('name', TEXT),
            'category': ('category', TEXT),
            'price': ('price', NUMBER),
            'stock': ('stockQuantity', NUMBER),
            'expiryDate': ('expiryDate', TEXT),
        },
        default_sort='name',
    ),
    'companies': ListSpec(
        search_fields=('name', 'email', 'contactPerson'),
        filters={'status': 'status'},
        sorts={'name': ('name', TEXT), 'medicineCount': ('medicineCount', NUMBER)},
        default_sort='name',
    ),
    'distributors': ListSpec(
        search_fields=('name', 'email', 'region', 'contactPerson'),
        filters={'status': 'status', 'region': 'region'},
        sorts={'name': ('name', TEXT), 'region': ('region', TEXT)},
        default_sort='name',
    ),
    'prescriptions': ListSpec(
        search_fields=('prescriptionId', 'patientName', 'doctorName'),
        filters={'status': 'status'},
        sorts={
            'date': ('prescriptionDate', TEXT),
            'patientName': ('patientName', TEXT),
            'status': ('status', TEXT),
        },
        default_sort='date',
        default_direction=DESC,
    ),
    'billings': ListSpec(
        search_fields=('billNumber', 'patientName', 'patientId'),
        filters={'status': 'status', 'paymentMethod': 'paymentMethod'},
        sorts={
            'date': ('createdAt', TEXT),
            'amount': ('totalAmount', NUMBER),
            'status': ('status', TEXT),
        },
        default_sort='date',
        default_direction=DESC,
    ),
    'rooms': ListSpec(
        search_fields=('roomNumber', 'type', 'ward'),
        filters={'status': 'status', 'type': 'type'},
        sorts={
            'roomNumber': ('roomNumber', TEXT),
            'capacity': ('capacity', NUMBER),
            'occupied': ('occupied', BOOL),
        },
        default_sort='roomNumber',
    ),
}
