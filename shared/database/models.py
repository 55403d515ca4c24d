"""Modelos SQLAlchemy del sistema de parques (actividades, inscripciones y cola de emails)"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Numeric, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shared.database.connection import Base


class Park(Base):
    __tablename__ = "parks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relaciones
    activities = relationship("Activity", back_populates="park")


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    park_id = Column(Integer, ForeignKey("parks.id"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    start_time = Column(String, nullable=True)  # "HH:MM"
    capacity = Column(Integer, nullable=True)

    # Precio
    is_free = Column(Boolean, nullable=False, server_default="1", default=True)
    is_price_random = Column(Boolean, nullable=False, server_default="0", default=False)  # precio flexible
    price = Column(Numeric(10, 2), nullable=True)
    min_price = Column(Numeric(10, 2), nullable=True)  # solo aplica con precio flexible
    max_price = Column(Numeric(10, 2), nullable=True)

    # Descuentos por segmento (porcentaje entero, 0 = no se ofrece)
    discount_seniors = Column(Integer, nullable=False, server_default="0", default=0)
    discount_students = Column(Integer, nullable=False, server_default="0", default=0)
    discount_families = Column(Integer, nullable=False, server_default="0", default=0)
    discount_disability = Column(Integer, nullable=False, server_default="0", default=0)
    discount_early_bird = Column(Integer, nullable=False, server_default="0", default=0)
    discount_early_bird_deadline = Column(DateTime(timezone=True), nullable=True)

    requires_approval = Column(Boolean, nullable=False, server_default="0", default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    park = relationship("Park", back_populates="activities")
    registrations = relationship("ActivityRegistration", back_populates="activity")


class ActivityRegistration(Base):
    """
    Inscripción ciudadana a una actividad

    stripe_payment_intent_id es único: un PaymentIntent solo puede generar una inscripción
    """
    __tablename__ = "activity_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    activity_id = Column(Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False, index=True)

    # Datos del participante
    full_name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    age = Column(Integer, nullable=True)
    emergency_contact = Column(String(100), nullable=True)
    emergency_phone = Column(String(20), nullable=True)
    medical_conditions = Column(Text, nullable=True)
    special_requests = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, server_default="pending")  # pending, approved, rejected
    payment_status = Column(String(20), nullable=False, server_default="pending")  # pending, paid, exempt

    # Stripe
    stripe_payment_intent_id = Column(String(100), unique=True, nullable=True)
    stripe_customer_id = Column(String(100), nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    # Auditoría de descuentos (copiados de la metadata del PaymentIntent)
    applied_discount_type = Column(String(50), nullable=True)
    applied_discount_percentage = Column(Integer, nullable=True)
    original_amount = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)

    accepts_terms = Column(Boolean, nullable=False, server_default="0", default=False)
    registration_source = Column(String(50), nullable=False, server_default="web")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relaciones
    activity = relationship("Activity", back_populates="registrations")
    history = relationship("ActivityRegistrationHistory", back_populates="registration", cascade="all, delete-orphan")


class ActivityRegistrationHistory(Base):
    """Histórico de cambios en inscripciones (auditoría)"""
    __tablename__ = "activity_registration_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(Integer, ForeignKey("activity_registrations.id", ondelete="CASCADE"), nullable=False)
    change_type = Column(String(50), nullable=False)  # created, status_changed, updated, cancelled
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=True)
    change_reason = Column(Text, nullable=True)
    change_details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relaciones
    registration = relationship("ActivityRegistration", back_populates="history")


class EmailQueue(Base):
    """
    Cola de emails (outbox)

    Los emails se escriben aquí después de confirmar la transacción de negocio
    y los entrega un worker de Celery
    """
    __tablename__ = "email_queue"

    id = Column(Integer, primary_key=True, autoincrement=True)
    to = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    template_id = Column(Integer, nullable=True)
    priority = Column(String(20), nullable=False, server_default="normal")  # low, normal, high, urgent
    status = Column(String(50), nullable=False, server_default="pending", index=True)  # pending, sending, sent, failed
    attempts = Column(Integer, nullable=False, server_default="0", default=0)
    max_attempts = Column(Integer, nullable=False, server_default="3", default=3)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
