"""sub-admin status and invitation codes

Revision ID: 1b2c3d4e5f6a
Revises: 0a1b2c3d4e5f
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '1b2c3d4e5f6a'
down_revision: Union[str, None] = '0a1b2c3d4e5f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

admin_status = sa.Enum('APPROVED', 'REJECTED', name='adminstatus')


def upgrade() -> None:
    admin_status.create(op.get_bind(), checkfirst=True)
    op.add_column('admins', sa.Column('status', admin_status, nullable=False, server_default='APPROVED'))
    op.add_column('admins', sa.Column('invitation_code', sa.String(length=32), nullable=True))
    op.create_unique_constraint('uq_admins_invitation_code', 'admins', ['invitation_code'])


def downgrade() -> None:
    op.drop_constraint('uq_admins_invitation_code', 'admins', type_='unique')
    op.drop_column('admins', 'invitation_code')
    op.drop_column('admins', 'status')
    admin_status.drop(op.get_bind(), checkfirst=True)
