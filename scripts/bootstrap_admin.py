"""初始化数据库并创建首位管理员，可选地签发一批邀请码。

用法::

    python scripts/bootstrap_admin.py <username> <password> <first> <last> <email> [--invites N --roles student]
"""
import argparse
import sys
from pathlib import Path

# 添加项目根目录到 path
sys.path.insert(0, str(Path(__file__).parent.parent))

from helpdesk.core.exceptions import HelpDeskError
from helpdesk.core.roles import Role
from helpdesk.core.session import SessionContext
from helpdesk.db import Base, SessionLocal, engine
from helpdesk.services.helpdesk import HelpDeskService

import helpdesk.models  # noqa: F401


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create the first administrator.")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("first_name")
    parser.add_argument("last_name")
    parser.add_argument("email")
    parser.add_argument("--invites", type=int, default=0, help="number of invite codes to issue")
    parser.add_argument(
        "--roles",
        nargs="+",
        default=["student"],
        choices=[r.name.lower() for r in Role],
        help="roles granted by the issued invites",
    )
    return parser.parse_args(argv)


def bootstrap(args) -> int:
    print("=" * 50)
    print("初始化 Help-Desk")
    print("=" * 50)

    print("\n[1/2] 创建数据表...")
    Base.metadata.create_all(bind=engine)
    print("  ✓ 数据表已就绪")

    print("\n[2/2] 创建首位管理员...")
    with SessionLocal() as db:
        service = HelpDeskService(db)
        try:
            admin = service.setup_first_admin(
                args.username, args.password, args.first_name, args.last_name, args.email
            )
        except HelpDeskError as exc:
            print(f"  ✗ {exc}")
            return 1
        print(f"  ✓ 管理员 {admin.username} (id={admin.id})")

        roles = [Role[name.upper()] for name in args.roles]
        ctx = SessionContext.for_user(admin)
        for _ in range(args.invites):
            invite = service.create_invite(ctx, roles)
            print(f"  邀请码: {invite.code}")

    print("\n" + "=" * 50)
    print("完成！")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(bootstrap(parse_args()))
