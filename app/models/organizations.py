import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.schemas.organizations import MemberList, MemberStatus

member_list_enum = Enum(
    MemberList,
    name="memberlist",
    values_callable=lambda enum_cls: [e.value for e in enum_cls],
)


class TrainingOrganization(Base):
    __tablename__ = "training_organizations"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    name: Mapped[str]
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=func.now(),
        server_default=func.now(),
        init=False,
    )
    members: Mapped[list["OrganizationMember"]] = relationship(
        back_populates="organization",
        cascade="all, delete-orphan",
        order_by=lambda: OrganizationMember.id,
        init=False,
    )

    def members_of(self, member_list: MemberList) -> list["OrganizationMember"]:
        return [m for m in self.members if m.member_list == member_list]

    @property
    def administrators(self) -> list["OrganizationMember"]:
        return self.members_of(MemberList.administrators)

    @property
    def trainers(self) -> list["OrganizationMember"]:
        return self.members_of(MemberList.trainers)


class OrganizationMember(Base):
    """One administrator or trainer entry of an organization."""

    __tablename__ = "organization_members"

    id: Mapped[int] = mapped_column(primary_key=True, init=False)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("training_organizations.id", ondelete="CASCADE"), index=True
    )
    organization: Mapped[TrainingOrganization] = relationship(
        back_populates="members", init=False
    )
    member_list: Mapped[MemberList] = mapped_column(member_list_enum)
    email: Mapped[str]
    status: Mapped[MemberStatus] = mapped_column(
        Enum(
            MemberStatus,
            name="memberstatus",
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
        )
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), default=None, index=True
    )
    invitation_token: Mapped[str | None] = mapped_column(default=None, repr=False)
    # Informational; redemption is checked against the Invitation record only.
    invitation_expires: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    invited_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    activated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "member_list",
            "email",
            name="uq_organization_members_list_email",
        ),
    )
