"""
Kindex Constants

Static configuration values that rarely change: file-type tables, junk file
names, project-type markers, embedding model token limits.
"""

# --- File Type Tables ---
# Extensions are lowercase and carry no leading dot.

BINARY_EXTENSIONS = frozenset(
    {
        # Images
        "png", "jpg", "jpeg", "gif", "svg", "ico", "webp", "bmp", "tiff", "tif",
        # Video
        "mp4", "avi", "mov", "mkv", "webm", "flv", "wmv", "m4v",
        # Audio
        "mp3", "wav", "ogg", "flac", "aac", "m4a", "wma",
        # Archives
        "zip", "tar", "gz", "bz2", "7z", "rar", "xz", "tgz",
        # Executables and objects
        "exe", "dll", "so", "dylib", "bin", "obj", "o", "a", "lib",
        # Databases
        "db", "sqlite", "sqlite3", "mdb", "accdb",
        # Office formats without an extractor (pdf and docx are extracted)
        "doc", "xls", "xlsx", "ppt", "pptx",
        # Fonts
        "ttf", "otf", "woff", "woff2", "eot",
        # Compiled artifacts
        "class", "jar", "war", "ear", "pyc", "pyo",
    }
)

TEXT_EXTENSIONS = frozenset(
    {
        # Prose and docs
        "txt", "md", "markdown", "rst", "adoc", "tex", "rtf",
        # Data and config
        "json", "xml", "yaml", "yml", "toml", "csv", "ini", "conf", "cfg",
        "properties", "env", "sql", "log",
        # Shell and scripts
        "sh", "bash", "zsh", "bat", "cmd", "ps1",
        # Code
        "kt", "kts", "java", "py", "js", "mjs", "cjs", "ts", "jsx", "tsx",
        "c", "cc", "cpp", "cxx", "h", "hpp", "cs", "go", "rs", "rb", "php",
        "swift", "scala", "r", "groovy", "gradle", "lua", "pl", "pm", "dart",
        "ex", "exs", "hs", "clj", "sol", "proto", "graphql",
        # Web
        "html", "htm", "css", "scss", "sass", "less", "vue", "svelte",
    }
)

# Binary containers we can pull text out of (no line tracking)
DOCUMENT_EXTENSIONS = frozenset({"pdf", "docx"})

EXCLUDED_FILE_NAMES = frozenset(
    {
        # System files
        ".DS_Store", "Thumbs.db", "desktop.ini",
        # Lock files
        "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "poetry.lock", "Gemfile.lock",
        # IDE files
        ".project", ".classpath", ".factorypath",
    }
)

# --- File Size Limits ---

MAX_FILE_BYTES = 5_000_000

# --- Project Types ---
# Marker files (glob patterns allowed) found in a source root activate the
# exclusion patterns of that ecosystem. Patterns use gitignore syntax.

PROJECT_TYPES: dict[str, dict[str, tuple[str, ...]]] = {
    "gradle": {
        "markers": ("build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts", "gradlew"),
        "excludes": ("build/", ".gradle/", "out/", "bin/", ".kotlintest/", ".kotlin/"),
    },
    "maven": {
        "markers": ("pom.xml", "mvnw"),
        "excludes": ("target/", ".mvn/", "out/", "bin/"),
    },
    "node": {
        "markers": ("package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml"),
        "excludes": (
            "node_modules/",
            "dist/",
            "build/",
            ".next/",
            ".nuxt/",
            "out/",
            "coverage/",
            ".cache/",
            ".parcel-cache/",
            ".turbo/",
            ".vite/",
        ),
    },
    "python": {
        "markers": ("requirements.txt", "setup.py", "pyproject.toml", "Pipfile", "poetry.lock"),
        "excludes": (
            "__pycache__/",
            "*.pyc",
            "*.pyo",
            "*.pyd",
            ".pytest_cache/",
            ".mypy_cache/",
            ".tox/",
            "venv/",
            "env/",
            ".venv/",
            ".env/",
            "dist/",
            "build/",
            "*.egg-info/",
            ".eggs/",
        ),
    },
    "go": {
        "markers": ("go.mod", "go.sum"),
        "excludes": ("vendor/", "bin/", "pkg/"),
    },
    "rust": {
        "markers": ("Cargo.toml", "Cargo.lock"),
        "excludes": ("target/",),
    },
    "ruby": {
        "markers": ("Gemfile", "Gemfile.lock", "Rakefile"),
        "excludes": ("vendor/", ".bundle/", "tmp/", "log/"),
    },
    "php": {
        "markers": ("composer.json", "composer.lock"),
        "excludes": ("vendor/", "var/cache/", "var/log/"),
    },
    "dotnet": {
        "markers": ("*.csproj", "*.sln", "*.fsproj", "*.vbproj"),
        "excludes": ("bin/", "obj/", "packages/", ".vs/", "Debug/", "Release/"),
    },
}

COMMON_EXCLUDES = (
    ".git/",
    ".svn/",
    ".hg/",
    ".idea/",
    ".vscode/",
    ".history/",
    ".DS_Store",
    "*.log",
    "*.tmp",
    "*.temp",
    "*.swp",
    "*.bak",
)

# --- Embedding Token Limits ---
# Ordered (substring, limit) pairs matched against the lowercased model name.

CHARS_PER_TOKEN = 4
DEFAULT_TOKEN_LIMIT = 2048

MODEL_TOKEN_LIMITS: tuple[tuple[str, int], ...] = (
    ("nomic-embed", 8192),
    ("mxbai", 512),
    ("bge-", 512),
    ("gte-", 8192),
    ("e5-", 512),
    ("all-minilm", 512),
    ("sentence-transformers", 512),
    ("text-embedding", 8191),
)
