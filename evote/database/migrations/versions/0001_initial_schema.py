"""voters, elections, candidates and ballots

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'voters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('matric_number', sa.String(length=50), nullable=True),
        sa.Column('password_hash', sa.String(length=200), nullable=False),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('verification_token', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('face_descriptor', sa.Text(), nullable=True),
        sa.Column('last_login_ip', sa.String(length=45), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('matric_number'),
        sa.UniqueConstraint('verification_token'),
    )
    op.create_table(
        'elections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'candidates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('election_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('party', sa.String(length=100), nullable=False),
        sa.Column('position', sa.String(length=100), nullable=False),
        sa.Column('votes_count', sa.Integer(), nullable=False),
        sa.CheckConstraint('votes_count >= 0', name='ck_candidate_votes_non_negative'),
        sa.ForeignKeyConstraint(['election_id'], ['elections.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('id', 'election_id', name='uq_candidate_election'),
    )
    op.create_index('ix_candidates_election_id', 'candidates', ['election_id'])
    op.create_table(
        'ballots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('voter_id', sa.Integer(), nullable=False),
        sa.Column('election_id', sa.Integer(), nullable=False),
        sa.Column('candidate_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.String(length=100), nullable=False),
        sa.Column('cast_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['voter_id'], ['voters.id']),
        sa.ForeignKeyConstraint(['election_id'], ['elections.id']),
        sa.ForeignKeyConstraint(
            ['candidate_id', 'election_id'], ['candidates.id', 'candidates.election_id'],
            name='fk_ballot_candidate_election',
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('voter_id', 'election_id', 'position', name='uq_ballot_voter_election_position'),
    )
    op.create_index('ix_ballots_voter_id', 'ballots', ['voter_id'])
    op.create_index('ix_ballots_candidate_id', 'ballots', ['candidate_id'])


def downgrade():
    op.drop_index('ix_ballots_candidate_id', table_name='ballots')
    op.drop_index('ix_ballots_voter_id', table_name='ballots')
    op.drop_table('ballots')
    op.drop_index('ix_candidates_election_id', table_name='candidates')
    op.drop_table('candidates')
    op.drop_table('elections')
    op.drop_table('voters')
