from __future__ import annotations

# Branch/tag flow
MASTER_BRANCH = "master"
REMOTE_NAME = "origin"
DEV_BRANCH_PREFIX = "develop"
RELEASE_TAG_PREFIX = "release"

# Credential cache layout, relative to the CLI home
CREDENTIALS_DIR = ".git"

# Executables a build command may start with
COMMAND_WHITELIST: tuple[str, ...] = ("npm", "cnpm", "yarn", "pnpm", "node")

# Relay actions that end a build as failed (must match the relay server)
BUILD_FAILED_ACTIONS: frozenset[str] = frozenset(
    {
        "prepare failed",
        "download failed",
        "install failed",
        "build failed",
        "pre-publish failed",
        "publish failed",
    }
)

# Publish targets the relay knows how to upload to
PUBLISH_TARGETS: tuple[tuple[str, str], ...] = (("oss", "Aliyun OSS"),)

MANIFEST_FILE = "package.json"
GITIGNORE_FILE = ".gitignore"

GITIGNORE_TEMPLATE = """\
.DS_Store
node_modules
/dist


# local env files
.env.local
.env.*.local

# Log files
npm-debug.log*
yarn-debug.log*
yarn-error.log*
pnpm-debug.log*

# Editor directories and files
.idea
.vscode
*.suo
*.ntvs*
*.njsproj
*.sln
*.sw?
"""


def dev_branch(version: str) -> str:
    return f"{DEV_BRANCH_PREFIX}/{version}"


def release_tag(version: str) -> str:
    return f"{RELEASE_TAG_PREFIX}/{version}"
