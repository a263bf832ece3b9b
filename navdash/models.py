import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

ALL_CATEGORY = 'all'
DEFAULT_ICON = '/favicon.ico'
UPLOADS_PREFIX = '/uploads/'

_FRACTION_RE = re.compile(r'(\.\d{6})\d+')


def utcnow():
    return datetime.now(timezone.utc)


def parse_timestamp(value):
    """Parse an ISO-8601 timestamp as written by this app or by older data files."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    # Older files carry nanoseconds; datetime only keeps microseconds.
    text = _FRACTION_RE.sub(r'\1', text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value):
    return value.isoformat() if value else None


@dataclass
class Category:
    id: str
    name: str
    icon: str = ''
    upload_dir: str = ''
    sort: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            icon=data.get('icon', ''),
            upload_dir=data.get('uploadDir', ''),
            sort=int(data.get('sort') or 0),
            created_at=parse_timestamp(data.get('createdAt')),
            updated_at=parse_timestamp(data.get('updatedAt')),
        )

    def to_dict(self):
        result = {
            'id': self.id,
            'name': self.name,
            'icon': self.icon,
            'uploadDir': self.upload_dir,
            'sort': self.sort,
            'createdAt': format_timestamp(self.created_at),
        }
        if self.updated_at:
            result['updatedAt'] = format_timestamp(self.updated_at)
        return result


@dataclass
class Bookmark:
    id: str
    name: str
    url: str
    description: str = ''
    icon: str = DEFAULT_ICON
    category: str = ALL_CATEGORY
    tags: list = field(default_factory=list)
    sort: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id', ''),
            name=data.get('name', ''),
            url=data.get('url', ''),
            description=data.get('description', ''),
            icon=data.get('icon', ''),
            category=data.get('category', ''),
            tags=list(data.get('tags') or []),
            sort=int(data.get('sort') or 0),
            created_at=parse_timestamp(data.get('createdAt')),
            updated_at=parse_timestamp(data.get('updatedAt')),
        )

    def to_dict(self):
        result = {
            'id': self.id,
            'name': self.name,
            'url': self.url,
            'description': self.description,
            'icon': self.icon,
            'category': self.category,
            'tags': list(self.tags or []),
            'sort': self.sort,
            'createdAt': format_timestamp(self.created_at),
        }
        if self.updated_at:
            result['updatedAt'] = format_timestamp(self.updated_at)
        return result


@dataclass
class Settings:
    site_title: str = '极简网站导航'
    card_width: int = 180
    card_height: int = 80
    icon_width: int = 50
    icon_height: int = 50
    sidebar_width: int = 300
    theme: str = 'auto'
    updated_at: datetime = field(default_factory=utcnow)

    # (min, max) for every numeric setting
    RANGES = {
        'card_width': (120, 300),
        'card_height': (60, 150),
        'icon_width': (24, 80),
        'icon_height': (24, 80),
        'sidebar_width': (50, 600),
    }
    THEMES = ('auto', 'light', 'dark')
    MAX_TITLE_LENGTH = 50

    @classmethod
    def from_dict(cls, data):
        return cls(
            site_title=data.get('siteTitle', ''),
            card_width=int(data.get('cardWidth') or 0),
            card_height=int(data.get('cardHeight') or 0),
            icon_width=int(data.get('iconWidth') or 0),
            icon_height=int(data.get('iconHeight') or 0),
            sidebar_width=int(data.get('sidebarWidth') or 0),
            theme=data.get('theme', ''),
            updated_at=parse_timestamp(data.get('updatedAt')),
        )

    def to_dict(self):
        return {
            'siteTitle': self.site_title,
            'cardWidth': self.card_width,
            'cardHeight': self.card_height,
            'iconWidth': self.icon_width,
            'iconHeight': self.icon_height,
            'sidebarWidth': self.sidebar_width,
            'theme': self.theme,
            'updatedAt': format_timestamp(self.updated_at),
        }


@dataclass
class User:
    username: str
    password: str
    role: str = 'admin'
    created_at: datetime = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            username=data.get('username', ''),
            password=data.get('password', ''),
            role=data.get('role', ''),
            created_at=parse_timestamp(data.get('createdAt')),
        )

    def to_dict(self):
        """Public view of the user, never includes the password."""
        return {
            'username': self.username,
            'role': self.role,
            'createdAt': format_timestamp(self.created_at),
        }


@dataclass(frozen=True)
class Actor:
    """Whoever triggered a mutation. Only ever used for audit log lines."""

    username: str = 'unknown'
    role: str = ''

    def __str__(self):
        return self.username


ANONYMOUS = Actor()
