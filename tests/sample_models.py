"""Models shared by the soft delete tests."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from softdelete_toolkit.soft_delete import CascadeSoftDeleteMixin, SoftDeleteMixin

Base = declarative_base()


class Company(Base, CascadeSoftDeleteMixin):
    """Principal with two cascaded collections."""

    __tablename__ = "companies"
    __soft_delete_cascade__ = ["quotes", "contacts"]

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    tenant_id = Column(Integer, default=1, nullable=False)
    version = Column(Integer, nullable=False)

    quotes = relationship("Quote", back_populates="company", order_by="Quote.id")
    contacts = relationship("Contact", back_populates="company", order_by="Contact.id")
    attachments = relationship("Attachment", back_populates="company")

    __mapper_args__ = {"version_id_col": version}


class Quote(Base, CascadeSoftDeleteMixin):
    __tablename__ = "quotes"
    __soft_delete_cascade__ = ["line_items"]

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    tenant_id = Column(Integer, default=1, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"))

    company = relationship("Company", back_populates="quotes")
    line_items = relationship(
        "LineItem", back_populates="quote", order_by="LineItem.id"
    )


class LineItem(Base, CascadeSoftDeleteMixin):
    __tablename__ = "line_items"

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    tenant_id = Column(Integer, default=1, nullable=False)
    quote_id = Column(Integer, ForeignKey("quotes.id"))

    quote = relationship("Quote", back_populates="line_items")


class Contact(Base, CascadeSoftDeleteMixin):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    tenant_id = Column(Integer, default=1, nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"))

    company = relationship("Company", back_populates="contacts")


class Attachment(Base):
    """Related model without soft delete support."""

    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"))

    company = relationship("Company", back_populates="attachments")


class Book(Base, SoftDeleteMixin):
    """Model using the plain soft deleted flag."""

    __tablename__ = "books"

    id = Column(Integer, primary_key=True)
    title = Column(String(100))
    tenant_id = Column(Integer, default=1, nullable=False)


class Membership(Base, CascadeSoftDeleteMixin):
    """Model with a composite primary key."""

    __tablename__ = "memberships"

    club_id = Column(Integer, primary_key=True)
    member_id = Column(Integer, primary_key=True)


class Region(Base, CascadeSoftDeleteMixin):
    """Model declaring its own table arguments."""

    __tablename__ = "regions"
    __table_args__ = (UniqueConstraint("code", name="uq_regions_code"),)

    id = Column(Integer, primary_key=True)
    code = Column(String(10), nullable=False)


# Self-referential hierarchy, kept on its own base because its cascade graph
# has a cycle.
TreeBase = declarative_base()


class Folder(TreeBase, CascadeSoftDeleteMixin):
    __tablename__ = "folders"
    __soft_delete_cascade__ = ["children"]

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    parent_id = Column(Integer, ForeignKey("folders.id"))

    parent = relationship(
        "Folder", remote_side=[id], back_populates="children", post_update=True
    )
    children = relationship("Folder", back_populates="parent", order_by="Folder.id")


# Diamond: a principal reaches the same dependent directly and through a
# middle entity.
DiamondBase = declarative_base()


class Project(DiamondBase, CascadeSoftDeleteMixin):
    __tablename__ = "projects"
    __soft_delete_cascade__ = ["milestones", "tasks"]

    id = Column(Integer, primary_key=True)

    milestones = relationship("Milestone", order_by="Milestone.id")
    tasks = relationship("Task", order_by="Task.id")


class Milestone(DiamondBase, CascadeSoftDeleteMixin):
    __tablename__ = "milestones"
    __soft_delete_cascade__ = ["tasks"]

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"))

    tasks = relationship("Task", order_by="Task.id")


class Task(DiamondBase, CascadeSoftDeleteMixin):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"))
    milestone_id = Column(Integer, ForeignKey("milestones.id"))
