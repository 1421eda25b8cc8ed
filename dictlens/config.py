from typing import FrozenSet, Set, Tuple

IGNORE_DIRS: Set[str] = {
    '.git',
    'node_modules',
    'venv',
    '.venv',
    '__pycache__',
    'dist',
    'build',
    '.next',
    '.nuxt',
    '.svelte-kit',
    '.intlayer',
    'coverage',
    '.idea',
    '.vscode',
    'target',
    'out',
}

# Sources searched for dictionary call sites.
SOURCE_GLOB = "**/*.{ts,tsx,js,jsx,mjs,cjs,vue,svelte}"
SOURCE_EXCLUDE_GLOB = "**/node_modules/**"

SCRIPT_EXTENSIONS: FrozenSet[str] = frozenset({
    '.ts', '.tsx', '.mts', '.cts', '.js', '.jsx', '.mjs', '.cjs',
})

# Markup-hosting dialects that go through the script normalizer first.
MARKUP_EXTENSIONS: FrozenSet[str] = frozenset({'.vue', '.svelte'})

STRUCTURED_DATA_EXTENSIONS: FrozenSet[str] = frozenset({'.json', '.json5', '.jsonc'})

HOOK_ACCESSOR = "useIntlayer"
DIRECT_ACCESSOR = "getIntlayer"
ACCESSOR_NAMES: FrozenSet[str] = frozenset({HOOK_ACCESSOR, DIRECT_ACCESSOR})

# Framework node accessors; never keys of the content itself.
ACCESSOR_SUFFIXES: FrozenSet[str] = frozenset({'value', 'raw'})
SKIPPED_PATH_SEGMENTS: FrozenSet[str] = frozenset({'use', 'value', 'raw'})

# The package whose accessors return raw content instead of framework nodes.
CORE_MODULE = "intlayer"
PROJECT_MARKER_PACKAGE = "intlayer"
PACKAGE_JSON_DEPENDENCY_FIELDS: Tuple[str, ...] = (
    'dependencies',
    'devDependencies',
    'peerDependencies',
)

DEFAULT_LOCALE = "en"
FALLBACK_LOCALE = "en"
DEFAULT_CMS_URL = "https://intlayer.org"
DEFAULT_UNMERGED_DICTIONARIES_DIR = ".intlayer/unmerged_dictionary"
DEFAULT_DICTIONARIES_DIR = ".intlayer/dictionary"
PROJECT_CONFIG_FILE_NAME = "intlayer.config.json"

# Seconds.
CONFIG_CACHE_TTL = 2.0
USAGE_CACHE_TTL = 5.0
CONTENT_USAGE_CACHE_TTL = 5 * 60.0
DECORATION_DEBOUNCE_DELAY = 0.5
UNUSED_DEBOUNCE_DELAY = 1.0

DECORATION_TRUNCATE_LENGTH = 60
