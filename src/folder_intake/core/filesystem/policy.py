"""Exclusion policy: the single source of truth for admit or reject.

Combines the extension allow-list, the file size limit, hidden/system folder
rules and the compiled ignore patterns. The three checks are independent; the
scanner composes them.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from folder_intake.core.filesystem.patterns import (
    EMPTY_RULES,
    CompiledRules,
    IgnoreRule,
    PatternCompiler,
)
from folder_intake.types import (
    EntryKind,
    ExclusionDecision,
    ExclusionReason,
    FileRecord,
)

DEFAULT_MAX_FILE_SIZE: Final[int] = 100 * 1024 * 1024

DEFAULT_IGNORE_FILE_NAME: Final[str] = ".gitignore"

# Version-control metadata: excluded even when hidden folders are included
CRITICAL_FOLDERS: Final[frozenset[str]] = frozenset({".git", ".svn", ".hg"})

EXCLUDED_FOLDERS: Final[frozenset[str]] = CRITICAL_FOLDERS | frozenset(
    {
        ".next",
        ".github",
        ".vscode",
        ".idea",
        ".DS_Store",
        ".vs",
        ".cache",
        ".npm",
        ".yarn",
        "__pycache__",
    }
)

DEFAULT_ALLOWED_EXTENSIONS: Final[frozenset[str]] = frozenset(
    {
        # Documentation and text
        "pdf", "doc", "docx", "txt", "rtf", "odt", "md", "markdown", "tex",
        "latex", "wiki", "rst", "adoc", "log", "msg", "pages", "epub", "mobi",
        "azw3", "djvu",
        # Web development
        "html", "htm", "xhtml", "css", "scss", "sass", "less", "styl", "js",
        "jsx", "ts", "tsx", "vue", "svelte", "php", "asp", "aspx", "jsp",
        "cshtml", "wasm", "wat", "webmanifest", "htaccess", "htpasswd", "ejs",
        "hbs", "handlebars", "pug", "jade", "haml", "liquid",
        # Programming languages
        "py", "pyc", "pyo", "pyd", "pyw", "ipynb", "java", "class", "jar",
        "war", "cpp", "cc", "cxx", "c", "h", "hpp", "hxx", "cs", "csx", "vb",
        "fs", "fsx", "rb", "rbw", "rake", "gemspec", "swift", "swiftmodule",
        "kt", "kts", "go", "mod", "rs", "rlib", "scala", "sc", "clj", "cljs",
        "cljc", "edn", "erl", "hrl", "ex", "exs", "hs", "lhs", "lua", "luac",
        "pl", "pm", "pod", "t", "r", "rdata", "rds", "rmd", "matlab", "m",
        "fig", "mat", "f", "f90", "f95", "f03", "f08", "pas", "pp", "groovy",
        "gvy", "gy", "gsh", "d", "jl", "dart", "elm", "coffee", "litcoffee",
        "ls", "livescript", "nim", "ml", "mli", "mll", "mly",
        # Shell and scripts
        "sh", "bash", "zsh", "fish", "csh", "ksh", "bat", "cmd", "ps1",
        "psm1", "psd1", "awk", "sed", "tcl", "expect",
        # Database and query languages
        "sql", "mysql", "pgsql", "plsql", "sqlite", "mongodb", "cypher",
        "sparql", "hql", "prisma",
        # Data formats
        "xml", "json", "yaml", "yml", "toml", "csv", "tsv", "ods", "xls",
        "xlsx", "numbers", "proto", "avro", "parquet", "thrift", "graphql",
        "gql",
        # Configuration files
        "ini", "conf", "config", "cfg", "properties", "env", "dist", "local",
        "docker", "dockerfile", "dockerignore", "vagrantfile", "buildpack",
        "gitignore", "gitattributes", "editorconfig", "eslintrc", "prettierrc",
        "stylelintrc", "babelrc", "npmrc", "yarnrc", "nvmrc", "gradle", "pom",
        "ivy", "ant", "cmake", "make", "mak", "makefile", "kubernetes", "helm",
        "terraform", "tf", "vcxproj", "csproj", "sln", "pbxproj",
        # IDEs and editors
        "vim", "vimrc", "gvimrc", "ideavimrc", "vscode", "sublime-project",
        "sublime-workspace", "workspace", "project", "code-workspace",
        # Templates
        "tpl", "tmpl", "template", "mustache", "nunjucks", "njk", "jinja",
        "j2", "erb", "eex", "leex", "swig",
        # Build output
        "map", "min", "bundle", "pack", "out", "build", "release",
        # Security and certificates
        "pem", "crt", "ca-bundle", "p12", "pfx", "key", "keystore", "csr",
        "cert",
        # Game development
        "unity", "unitypackage", "prefab", "asset", "blend", "blend1", "fbx",
        "obj", "mtl", "gltf", "glb", "uasset", "umap",
        # Machine learning
        "onnx", "pkl", "joblib", "h5", "hdf5", "pb", "pbtxt", "ckpt", "model",
        # Cloud and serverless
        "aws", "azure", "gcp", "cloudformation", "sam", "serverless",
        "netlify", "vercel",
    }
)  # fmt: skip


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lower-case extensions and strip any leading dot.

    Examples:
        >>> sorted(normalize_extensions([".TXT", "md", " py "]))
        ['md', 'py', 'txt']
    """
    return frozenset(ext.strip().lstrip(".").lower() for ext in extensions if ext.strip().lstrip("."))


class ExclusionPolicy:
    """Answers "is this file/folder admitted?" for one scan session.

    The policy owns a ``PatternCompiler``; ignore rules are loaded per dropped
    root with ``load_ignore_rules`` and apply to that root's whole subtree.
    """

    def __init__(
        self,
        *,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        excluded_folders: Iterable[str] = EXCLUDED_FOLDERS,
        critical_folders: Iterable[str] = CRITICAL_FOLDERS,
        include_hidden: bool = False,
        compiler: PatternCompiler | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            allowed_extensions: Extensions admitted for files (case-insensitive)
            max_file_size: Largest admitted file size in bytes
            excluded_folders: Folder names excluded when hidden folders are off
            critical_folders: Folder names excluded even when hidden folders are on
            include_hidden: Admit dot-folders that are not critical
            compiler: Pattern compiler; a fresh one is created when omitted
        """
        self.allowed_extensions: frozenset[str] = normalize_extensions(allowed_extensions)
        self.max_file_size: int = max_file_size
        self.excluded_folders: frozenset[str] = frozenset(excluded_folders)
        self.critical_folders: frozenset[str] = frozenset(critical_folders)
        self.include_hidden: bool = include_hidden
        self.compiler: PatternCompiler = compiler or PatternCompiler()
        self._rules: CompiledRules = EMPTY_RULES

    @property
    def rules(self) -> CompiledRules:
        return self._rules

    def load_ignore_rules(self, text: str | None) -> CompiledRules:
        """Compile ignore-file text and make it the active rule set.

        Args:
            text: Ignore-file content, or None to clear the active rules

        Returns:
            The newly active rules
        """
        self._rules = EMPTY_RULES if text is None else self.compiler.compile(text)
        return self._rules

    def evaluate_folder(self, path: str) -> ExclusionDecision:
        """Check every segment of a drop-relative folder path.

        With hidden folders off, a segment starting with ``.`` or listed in
        the excluded set rejects the folder; with hidden folders on, only
        critical segments do.

        Args:
            path: ``/``-separated path from the dropped root down to the folder

        Returns:
            Decision for the folder
        """
        segments = [segment for segment in path.split("/") if segment]
        name = segments[-1] if segments else path

        for segment in segments:
            if self._is_blocked_segment(segment):
                return ExclusionDecision.exclude(
                    name,
                    path,
                    EntryKind.FOLDER,
                    ExclusionReason.HIDDEN_FOLDER,
                    detail=segment if segment != name else None,
                )

        return ExclusionDecision.admit(name, path, EntryKind.FOLDER)

    def evaluate_file(self, record: FileRecord) -> ExclusionDecision:
        """Check a file's extension and size.

        Args:
            record: Candidate file

        Returns:
            Decision for the file
        """
        if record.extension is None or record.extension.lower() not in self.allowed_extensions:
            return ExclusionDecision.exclude(
                record.name,
                record.path,
                EntryKind.FILE,
                ExclusionReason.DISALLOWED_TYPE,
                detail=f".{record.extension}" if record.extension else "no extension",
            )

        if record.size > self.max_file_size:
            return ExclusionDecision.exclude(
                record.name,
                record.path,
                EntryKind.FILE,
                ExclusionReason.OVERSIZED,
                detail=f"{record.size} > {self.max_file_size} bytes",
            )

        return ExclusionDecision.admit(record.name, record.path, EntryKind.FILE)

    def evaluate_against_patterns(self, relative_path: str) -> bool:
        """Return True if any active ignore rule matches the root-relative path."""
        return self._rules.matches(relative_path)

    def matching_rule(self, relative_path: str) -> IgnoreRule | None:
        """Return the first active rule matching the root-relative path."""
        return self._rules.match(relative_path)

    def _is_blocked_segment(self, segment: str) -> bool:
        if self.include_hidden:
            return segment in self.critical_folders
        return segment.startswith(".") or segment in self.excluded_folders
