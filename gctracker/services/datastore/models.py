"""SQLAlchemy models for users, cases, and who tracks what."""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Column, ForeignKey, Integer, String, Text, text
from sqlalchemy.orm import relationship

db: SQLAlchemy = SQLAlchemy()


class DBUser(db.Model):  # type: ignore
    """Persistence for :class:`domain.User`."""

    __tablename__ = 'gct_users'

    username = Column(String(80), primary_key=True)
    email = Column(String(255), nullable=False)
    password = Column(String(60), nullable=False)
    """bcrypt hash."""

    reset_token = Column(String(36), nullable=True, index=True)
    reset_issued = Column(Integer, nullable=True)
    """Epoch time at which :attr:`reset_token` was issued."""

    tracking = relationship('DBTracking', back_populates='user',
                            cascade='all, delete-orphan')


class DBCase(db.Model):  # type: ignore
    """
    The global registry of tracked cases.

    A row exists only while at least one user tracks the case.
    """

    __tablename__ = 'gct_cases'

    case_id = Column(String(13), primary_key=True)
    status = Column(Text, nullable=False, server_default=text("''"),
                    default='')
    old_status = Column(Text, nullable=False, server_default=text("''"),
                        default='')

    tracking = relationship('DBTracking', back_populates='case',
                            passive_deletes=True)


class DBTracking(db.Model):  # type: ignore
    """A user tracks a case, under a label of their choosing."""

    __tablename__ = 'gct_tracking'

    username = Column(ForeignKey('gct_users.username'), primary_key=True)
    case_id = Column(ForeignKey('gct_cases.case_id'), primary_key=True,
                     index=True)
    name = Column(String(40), nullable=False, server_default=text("''"),
                  default='')

    user = relationship('DBUser', back_populates='tracking')
    case = relationship('DBCase', back_populates='tracking')
