"""Paths and file types injected as exclusions into recursive search and listing commands."""

EXCLUDED_DIRS = [
    # Build output
    "node_modules", ".git", "dist", "out", "build", "target", "bin", "obj", "packages",
    "tmp", "temp", "logs", "log", "coverage", "report", "reports", "test-results",
    "TestResults", "lcov-report",
    # Editors
    ".vscode", ".vscode-insiders", ".idea", ".settings", ".history", ".ionide",
    # JavaScript tooling
    ".next", ".nuxt", ".output", ".svelte-kit", ".parcel-cache", ".vite", ".cache",
    ".turbo", ".var", ".yarn", ".npm", "storybook-static", "_astro", ".nyc_output",
    "typings", "elm-stuff", "jspm_packages", "cypress",
    # Python
    "__pycache__", ".venv", "venv", "env", ".eggs", ".pytest_cache", ".mypy_cache",
    ".ruff_cache", ".ipynb_checkpoints", "htmlcov", "__debug_bin", ".tox", ".contextkit",
    # JVM, Go, Ruby, PHP
    ".gradle", "pkg", "vendor", ".bundle", "storage",
    # Native toolchains
    "CMakeFiles", "ipch", "Debug", "Release", "x64", "Win32",
    "DerivedData", "Pods", "Carthage",
    # Misc
    ".terraform", ".vagrant", ".github", ".gitlab",
]

EXCLUDED_EXTENSIONS = [
    # Images, video, audio
    "*.png", "*.jpg", "*.jpeg", "*.gif", "*.bmp", "*.ico", "*.webp", "*.svg", "*.tiff",
    "*.mp4", "*.webm", "*.avi", "*.mov", "*.mkv", "*.wmv", "*.flv",
    "*.mp3", "*.wav", "*.ogg", "*.aac",
    # Fonts, archives, documents
    "*.woff", "*.woff2", "*.ttf", "*.otf", "*.eot",
    "*.zip", "*.rar", "*.7z", "*.tar", "*.gz", "*.tgz",
    "*.pdf", "*.doc", "*.docx", "*.ppt", "*.pptx", "*.xls", "*.xlsx",
    # Compiled artifacts
    "*.exe", "*.dll", "*.so", "*.dylib", "*.o", "*.a", "*.obj", "*.lib", "*.exp", "*.ilk",
    "*.pch", "*.gch", "*.d", "*.pdb", "*.aps", "*.ncb", "*.opensdf", "*.sdf",
    "*.class", "*.jar", "*.war", "*.ear",
    "*.pyc", "*.pyo", "*.pyd", "*.spec",
    "*.test", "*.gem", "*.ipa", "*.app", "*.dSYM", "*.xcuserdatad",
    # IDE and tool state
    "*.user", "*.filters", "*.suo", "*.iml", "*.ipr", "*.iws", "*.swp", "*.swo", "*.swn",
    "*.elc", "*.sublime-project", "*.sublime-workspace", "*.tfstate", "*.tsbuildinfo",
    "*.vsix", "*.db", "*.sqlite", "*.sqlite3",
    # Generated text
    "*.log", "*.lock", "*.map", "*.tmp", "*.bak", "*.orig", "*.rej", "*.patch", "*.diff",
    "*.min.js", "*.min.css",
]

EXCLUDED_FILES = [
    # Lock files
    "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "composer.lock", "Gemfile.lock",
    "Pipfile.lock", "poetry.lock", "Cargo.lock", "bun.lockb",
    # OS metadata
    ".DS_Store", "Thumbs.db", "ehthumbs.db", "Desktop.ini",
    # Build artifacts and caches
    "CMakeCache.txt", "cmake_install.cmake", "dependency-reduced-pom.xml", "composer.phar",
    ".eslintcache", ".phpunit.result.cache", ".byebug_history", "tfplan",
    # Editor indexes
    "Session.vim", "tags", "cscope.out", "GTAGS", "GRTAGS", "GSYMS", "GPATH",
    "pnpm-workspace.yaml",
]
