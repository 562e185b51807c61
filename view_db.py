import click
from models import User, Task


def register_commands(app):
    """註冊 flask CLI 指令: flask --app app:create_app view-db"""

    @app.cli.command('view-db')
    @click.option('--email', default=None, help='只顯示這個使用者的任務')
    def view_db(email):
        """印出資料庫內容 (開發用)"""
        click.echo("\n" + "=" * 60)
        click.echo("資料庫內容")
        click.echo("=" * 60)

        # 使用者
        users_query = User.query.order_by(User.created_at.asc())
        if email:
            users_query = users_query.filter_by(email=email)
        users = users_query.all()

        click.echo(f"\n【使用者】共 {len(users)} 筆:")
        for u in users:
            click.echo(f"  ID: {u.id}, Email: {u.email}, Name: {u.name}")

        # 任務
        tasks_query = Task.query.order_by(Task.created_at.desc())
        if email:
            tasks_query = tasks_query.filter(Task.user_id.in_([u.id for u in users]))
        tasks = tasks_query.all()

        click.echo(f"\n【任務】共 {len(tasks)} 筆:")
        for t in tasks:
            completed = t.completed_at.isoformat() if t.completed_at else '-'
            click.echo(
                f"  ID: {t.id}, Title: {t.title}, Status: {t.status}, "
                f"Priority: {t.priority}, Owner: {t.owner.email}, Completed: {completed}"
            )

        click.echo("\n" + "=" * 60)
