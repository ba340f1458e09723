from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class Target:
    """A managed system that commands and tools operate on."""

    id: str
    name: str
    description: str
    path: str
    process_name: str
    repo: str
    stack: str
    deploy_script: str | None
    allowed_dirs: tuple[str, ...]
    root_files: tuple[str, ...]


TARGETS: Final[dict[str, Target]] = {
    "promptpay": Target(
        id="promptpay",
        name="PromptPay",
        description="AI-powered fintech platform for Africa + global",
        path="/home/ec2-user/PromptPay",
        process_name="upromptpay",
        repo="Jonahbaka/PromptPay",
        stack="TypeScript, Express 5, SQLite, PM2 cluster",
        deploy_script="/home/ec2-user/PromptPay/scripts/deploy.sh",
        allowed_dirs=("src/", "config/", "logs/", "public/", "scripts/", "dist/", "data/"),
        root_files=("package.json", "tsconfig.json", "ecosystem.config.cjs", ".gitignore"),
    ),
    "doctarx": Target(
        id="doctarx",
        name="DoctaRx",
        description="HIPAA-compliant telehealth platform",
        path="/home/ec2-user/zuma-teledoc",
        process_name="doctarx",
        repo="Jonahbaka/zuma-teledoc",
        stack="Next.js 15, Express 4, PostgreSQL, Redis, Socket.io",
        deploy_script="/home/ec2-user/zuma-teledoc/deploy.sh",
        allowed_dirs=(
            "app/",
            "server/",
            "components/",
            "lib/",
            "config/",
            "public/",
            "scripts/",
        ),
        root_files=(
            "package.json",
            "next.config.js",
            "jsconfig.json",
            "tailwind.config.js",
            ".gitignore",
            "Dockerfile",
        ),
    ),
}

TARGET_ALIASES: Final[dict[str, str]] = {
    "pp": "promptpay",
    "promptpay": "promptpay",
    "upromptpay": "promptpay",
    "dx": "doctarx",
    "doctarx": "doctarx",
    "teledoc": "doctarx",
    "zuma": "doctarx",
}


def resolve_target(name: str) -> Target | None:
    key = TARGET_ALIASES.get(name.strip().lower())
    return TARGETS.get(key) if key else None


def default_target(target_id: str | None = None) -> Target:
    if target_id:
        resolved = resolve_target(target_id)
        if resolved is None:
            raise ValueError(f"Unknown target: {target_id}")
        return resolved
    return next(iter(TARGETS.values()))


def format_target_list() -> str:
    return "\n\n".join(
        f"*{t.name}* (`{t.id}`) - {t.description}\n"
        f"  Path: `{t.path}` | Process: `{t.process_name}`\n"
        f"  Stack: {t.stack}"
        for t in TARGETS.values()
    )
