import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.models.organizations import member_list_enum
from app.schemas.organizations import MemberList


class AdminInvitation(Base):
    """Single-role system admin invitation; one pending record per email."""

    __tablename__ = "admin_invitations"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    email: Mapped[str] = mapped_column(index=True)
    token_hash: Mapped[str] = mapped_column(repr=False)
    expires_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    invited_by: Mapped[str | None] = mapped_column(default=None)
    accepted_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )


class Invitation(Base):
    """
    Multi-role invitation keyed by email.

    Every grant event appends a token hash; any of them redeems the whole
    record, which is deleted on acceptance.
    """

    __tablename__ = "invitations"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    email: Mapped[str] = mapped_column(unique=True, index=True)
    super_admin: Mapped[bool] = mapped_column(default=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    tokens: Mapped[list["InvitationToken"]] = relationship(
        back_populates="invitation",
        cascade="all, delete-orphan",
        order_by=lambda: InvitationToken.id,
        init=False,
    )
    grants: Mapped[list["InvitationGrant"]] = relationship(
        back_populates="invitation",
        cascade="all, delete-orphan",
        order_by=lambda: InvitationGrant.id,
        init=False,
    )

    def organization_ids(self, member_list: MemberList) -> list[int]:
        return [
            grant.organization_id
            for grant in self.grants
            if grant.member_list == member_list
        ]

    @property
    def org_admin(self) -> list[int]:
        return self.organization_ids(MemberList.administrators)

    @property
    def org_trainer(self) -> list[int]:
        return self.organization_ids(MemberList.trainers)

    @property
    def has_grants(self) -> bool:
        return self.super_admin or bool(self.grants)


class InvitationToken(Base):
    __tablename__ = "invitation_tokens"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    invitation_id: Mapped[int] = mapped_column(
        ForeignKey("invitations.id", ondelete="CASCADE"), index=True, init=False
    )
    invitation: Mapped[Invitation] = relationship(back_populates="tokens", init=False)
    token_hash: Mapped[str] = mapped_column(repr=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )


class InvitationGrant(Base):
    __tablename__ = "invitation_grants"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    invitation_id: Mapped[int] = mapped_column(
        ForeignKey("invitations.id", ondelete="CASCADE"), index=True, init=False
    )
    invitation: Mapped[Invitation] = relationship(back_populates="grants", init=False)
    member_list: Mapped[MemberList] = mapped_column(member_list_enum)
    # Soft reference: the organization may be deleted while the grant is pending.
    organization_id: Mapped[int] = mapped_column(index=True)

    __table_args__ = (
        UniqueConstraint(
            "invitation_id",
            "member_list",
            "organization_id",
            name="uq_invitation_grants_scope",
        ),
    )
