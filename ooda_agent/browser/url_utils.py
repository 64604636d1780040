import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAM_PREFIXES = ('utm_', 'fbclid', 'gclid', 'msclkid')
DEFAULT_PORTS = {'http': 80, 'https': 443}

_HTTP_URL_RE = re.compile(r'^https?://', re.IGNORECASE)
_EXPLICIT_URL_RE = re.compile(r'https?://[^\s)]+', re.IGNORECASE)


def is_http_url(url: str) -> bool:
	return bool(_HTTP_URL_RE.match(str(url or '').strip()))


def canonicalize_url(raw_url: str, strip_hash: bool = True, strip_tracking_params: bool = True) -> str:
	"""
	Normalize a URL for navigation and de-duplication.

	Lower-cases scheme and host, drops default ports, the fragment and tracking
	query parameters, and a trailing slash. Input that does not parse as an
	absolute URL is returned stripped but otherwise untouched.
	"""
	raw = str(raw_url or '').strip()
	try:
		parts = urlsplit(raw)
		port = parts.port
	except ValueError:
		return raw
	if not parts.scheme or not parts.netloc:
		return raw

	scheme = parts.scheme.lower()
	host = (parts.hostname or '').lower()
	if ':' in host:
		host = f'[{host}]'
	if port is not None and DEFAULT_PORTS.get(scheme) != port:
		host = f'{host}:{port}'
	userinfo = parts.netloc.rpartition('@')[0]
	netloc = f'{userinfo}@{host}' if userinfo else host

	query = parts.query
	if strip_tracking_params and query:
		pairs = [
			(key, value)
			for key, value in parse_qsl(query, keep_blank_values=True)
			if not key.lower().startswith(TRACKING_PARAM_PREFIXES)
		]
		query = urlencode(pairs)

	fragment = '' if strip_hash else parts.fragment
	path = parts.path or '/'
	normalized = urlunsplit((scheme, netloc, path, query, fragment))
	return normalized[:-1] if normalized.endswith('/') else normalized


def dedupe_canonical_urls(urls) -> list[str]:
	seen: set[str] = set()
	out: list[str] = []
	for value in urls:
		canonical = canonicalize_url(value)
		if not is_http_url(canonical) or canonical in seen:
			continue
		seen.add(canonical)
		out.append(canonical)
	return out


def extract_explicit_urls(text: str) -> list[str]:
	return dedupe_canonical_urls(_EXPLICIT_URL_RE.findall(str(text or '')))
