import logging
import time
import uuid
from urllib.parse import urljoin, urlparse, urlsplit

import requests
import validators
from bs4 import BeautifulSoup

from .models import UPLOADS_PREFIX

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; Navdash/1.0)'


def new_id(prefix):
    """Opaque id: prefix, nanosecond timestamp and a short random suffix."""
    return f'{prefix}_{time.time_ns()}_{uuid.uuid4().hex[:8]}'


def validate_url(url):
    """Syntactic URL check. Nothing is resolved or fetched."""
    if not url or not url.strip():
        return False
    url = url.strip()
    if any(char.isspace() for char in url):
        return False
    # simple_host lets intranet names like http://nas:5000 through
    if validators.url(url, simple_host=True):
        return True
    # Other schemes a dashboard links to: smb://, chrome://, file:// ...
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc or parts.path)


def is_local_icon(icon):
    return bool(icon) and icon.startswith(UPLOADS_PREFIX)


def clean_tags(tags):
    """Strip whitespace and drop empty tags, keeping order and case."""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(',')
    cleaned = []
    for tag in tags:
        if tag is None:
            continue
        tag = str(tag).strip()
        if tag:
            cleaned.append(tag)
    return cleaned


def fetch_metadata(url, timeout=10, max_size=1024 * 1024):
    """Fetch page metadata (title, description, icon) to prefill a bookmark."""
    metadata = {
        'title': None,
        'description': None,
        'icon': None,
    }

    try:
        headers = {
            'User-Agent': USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        }

        response = requests.get(
            url,
            headers=headers,
            timeout=timeout,
            allow_redirects=True,
            stream=True
        )

        # Check content size
        content_length = response.headers.get('content-length')
        if content_length and int(content_length) > max_size:
            logger.warning(f"Content too large for {url}: {content_length} bytes")
            return metadata

        # Only process HTML content
        content_type = response.headers.get('content-type', '').lower()
        if 'text/html' not in content_type:
            return metadata

        response.raise_for_status()

        content = response.raw.read(max_size, decode_content=True)
        soup = BeautifulSoup(content, 'html.parser')

        title_tag = soup.find('title')
        if title_tag:
            metadata['title'] = title_tag.get_text().strip()[:512] or None

        og_title = soup.find('meta', property='og:title')
        if og_title and og_title.get('content', '').strip():
            metadata['title'] = og_title['content'].strip()[:512]

        description = soup.find('meta', attrs={'name': 'description'})
        if description and description.get('content', '').strip():
            metadata['description'] = description['content'].strip()[:1024]

        og_description = soup.find('meta', property='og:description')
        if og_description and og_description.get('content', '').strip():
            metadata['description'] = og_description['content'].strip()[:1024]

        # First icon link wins, otherwise the conventional /favicon.ico
        for link in soup.find_all('link', rel=True):
            rel = ' '.join(link['rel']).lower()
            href = link.get('href')
            if href and 'icon' in rel:
                metadata['icon'] = urljoin(response.url or url, href)
                break
        if not metadata['icon']:
            parsed_url = urlparse(response.url or url)
            metadata['icon'] = f"{parsed_url.scheme}://{parsed_url.netloc}/favicon.ico"

        return metadata

    except Exception as e:
        logger.warning(f"Failed to fetch metadata for {url}: {str(e)}")
        return metadata
