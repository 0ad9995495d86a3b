import os

# Debe definirse antes de importar la aplicación
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"

from datetime import date, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import database
import models
from main import app
from security import get_password_hash, token_para_usuario, token_para_socio

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database.engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[database.get_db] = override_get_db


def proxima_fecha(dia_semana, desde=None):
    """Próxima fecha (a partir de mañana) que cae en el día indicado"""
    desde = desde or date.today() + timedelta(days=1)
    objetivo = models.DIAS_SEMANA.index(dia_semana)
    return desde + timedelta(days=(objetivo - desde.weekday()) % 7)


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db():
    database.Base.metadata.drop_all(bind=database.engine)
    database.init_db(bind=database.engine, session_factory=TestingSessionLocal)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    return TestClient(app)


def _rol(db, nombre):
    return db.query(models.Rol).filter(models.Rol.nombre == nombre).first()


@pytest.fixture
def admin(db):
    user = models.Usuario(
        rol_id=_rol(db, "Administrador").id,
        nombre_usuario="admin",
        email="admin@gym.cl",
        password_hash=get_password_hash("admin123"),
        nombre="Ana",
        apellido="Rojas",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_headers(admin):
    return auth(token_para_usuario(admin))


def crear_entrenador(db, email, nombre="Pedro", apellido="Soto"):
    user = models.Usuario(
        rol_id=_rol(db, "Entrenador").id,
        nombre_usuario=email.split("@")[0],
        email=email,
        password_hash=get_password_hash("coach123"),
        nombre=nombre,
        apellido=apellido,
    )
    db.add(user)
    db.flush()
    entrenador = models.Entrenador(usuario_id=user.id, especialidad="Funcional")
    db.add(entrenador)
    db.commit()
    db.refresh(entrenador)
    return entrenador


@pytest.fixture
def entrenador(db):
    return crear_entrenador(db, "pedro@gym.cl")


@pytest.fixture
def entrenador_headers(db, entrenador):
    return auth(token_para_usuario(entrenador.usuario))


def crear_socio(db, rut, email, nombre="Carla", apellido="Muñoz"):
    socio = models.Socio(
        rut=rut,
        nombre=nombre,
        apellido=apellido,
        email=email,
        telefono="912345678",
        password_hash=get_password_hash("socio123"),
    )
    db.add(socio)
    db.commit()
    db.refresh(socio)
    return socio


@pytest.fixture
def socio(db):
    return crear_socio(db, "123456785", "carla@correo.cl")


@pytest.fixture
def socio_headers(socio):
    return auth(token_para_socio(socio))


@pytest.fixture
def plan(db):
    plan = models.PlanMembresia(nombre_plan="Mensual", precio=30000, duracion_dias=30)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def dar_membresia(db, socio, plan, estado=models.MEMBRESIA_VIGENTE, inicio=None, vencimiento=None):
    inicio = inicio or date.today()
    m = models.Membresia(
        socio_id=socio.id,
        plan_id=plan.id,
        fecha_inicio=inicio,
        fecha_vencimiento=vencimiento or inicio + timedelta(days=plan.duracion_dias),
        estado=estado,
        monto_pagado=plan.precio,
    )
    db.add(m)
    db.commit()
    db.refresh(m)
    return m


@pytest.fixture
def socio_vigente(db, socio, plan):
    dar_membresia(db, socio, plan)
    return socio


def crear_clase(db, entrenador, dia="Lunes", cupo=10, nombre="Spinning", inicio=time(9, 0), fin=time(10, 0), **extra):
    clase = models.Clase(
        nombre_clase=nombre,
        entrenador_id=entrenador.id,
        dia_semana=dia,
        hora_inicio=inicio,
        hora_fin=fin,
        cupo_maximo=cupo,
        **extra
    )
    db.add(clase)
    db.commit()
    db.refresh(clase)
    return clase


@pytest.fixture
def clase(db, entrenador):
    return crear_clase(db, entrenador)
