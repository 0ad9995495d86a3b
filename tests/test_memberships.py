from datetime import date, timedelta

import models
import memberships
from conftest import crear_socio, dar_membresia


def _comprar(client, socio_headers, plan):
    r = client.post("/api/socio/membresia", json={"plan_id": plan.id}, headers=socio_headers)
    assert r.status_code == 201
    return r.json()["pago_id"]


def test_compra_crea_pago_pendiente(client, db, socio_headers, plan):
    pago_id = _comprar(client, socio_headers, plan)
    pago = db.get(models.Pago, pago_id)
    assert pago.monto_pago == 30000
    assert pago.concepto == "Pago de Membresía: Mensual - PENDIENTE DE ASIGNACIÓN"
    assert pago.membresia_id is None


def test_compra_plan_inactivo(client, db, socio_headers, plan):
    plan.activo = False
    db.commit()
    r = client.post("/api/socio/membresia", json={"plan_id": plan.id}, headers=socio_headers)
    assert r.status_code == 404


def test_asignar_membresia(client, db, socio, socio_headers, admin_headers, plan):
    pago_id = _comprar(client, socio_headers, plan)
    r = client.post("/api/admin/membresias/asignar", json={
        "socio_id": socio.id, "plan_id": plan.id, "pago_id": pago_id,
    }, headers=admin_headers)
    assert r.status_code == 201
    m = r.json()["membresia"]
    assert m["estado"] == "Vigente"
    assert m["fecha_vencimiento"] == (date.today() + timedelta(days=30)).isoformat()
    assert m["monto_pagado"] == 30000

    db.expire_all()
    pago = db.get(models.Pago, pago_id)
    assert pago.membresia_id == m["id"]
    assert pago.concepto == "Pago de Membresía: Mensual"

    r = client.get("/api/socio/membresia", headers=socio_headers)
    assert r.json()["plan"]["nombre_plan"] == "Mensual"


def test_asignar_reactiva_socio_inactivo(client, db, socio, socio_headers, admin_headers, plan):
    pago_id = _comprar(client, socio_headers, plan)
    socio.estado_socio = models.SOCIO_INACTIVO
    db.commit()
    r = client.post("/api/admin/membresias/asignar", json={
        "socio_id": socio.id, "plan_id": plan.id, "pago_id": pago_id,
    }, headers=admin_headers)
    assert r.status_code == 201
    db.expire_all()
    assert db.get(models.Socio, socio.id).estado_socio == "Activo"


def test_asignar_campos_faltantes(client, admin_headers):
    r = client.post("/api/admin/membresias/asignar", json={"socio_id": 1}, headers=admin_headers)
    assert r.status_code == 400


def test_asignar_pago_de_otro_socio(client, db, socio_headers, admin_headers, plan):
    pago_id = _comprar(client, socio_headers, plan)
    otro = crear_socio(db, "111111111", "otro@correo.cl")
    r = client.post("/api/admin/membresias/asignar", json={
        "socio_id": otro.id, "plan_id": plan.id, "pago_id": pago_id,
    }, headers=admin_headers)
    assert r.status_code == 400


def test_asignar_pago_ya_usado(client, socio, socio_headers, admin_headers, plan):
    pago_id = _comprar(client, socio_headers, plan)
    payload = {"socio_id": socio.id, "plan_id": plan.id, "pago_id": pago_id}
    assert client.post("/api/admin/membresias/asignar", json=payload, headers=admin_headers).status_code == 201
    r = client.post("/api/admin/membresias/asignar", json=payload, headers=admin_headers)
    assert r.status_code == 409


def test_asignar_con_membresia_abierta(client, db, socio, socio_headers, admin_headers, plan):
    dar_membresia(db, socio, plan, estado=models.MEMBRESIA_SUSPENDIDA)
    pago_id = _comprar(client, socio_headers, plan)
    r = client.post("/api/admin/membresias/asignar", json={
        "socio_id": socio.id, "plan_id": plan.id, "pago_id": pago_id,
    }, headers=admin_headers)
    assert r.status_code == 409


def test_asignar_entidades_inexistentes(client, socio, admin_headers, plan):
    r = client.post("/api/admin/membresias/asignar", json={
        "socio_id": socio.id, "plan_id": plan.id, "pago_id": 999,
    }, headers=admin_headers)
    assert r.status_code == 404


def test_pausar_y_reanudar_extiende_vencimiento(client, db, socio_vigente, admin_headers):
    m = db.query(models.Membresia).filter(models.Membresia.socio_id == socio_vigente.id).first()
    vencimiento = m.fecha_vencimiento

    r = client.post("/api/admin/membresias/pausar", json={
        "socio_id": socio_vigente.id, "dias": 10, "motivo": "Viaje",
    }, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["membresia"]["estado"] == "Suspendida"
    assert r.json()["membresia"]["dias_suspension"] == 10

    r = client.post("/api/admin/membresias/reanudar", json={"socio_id": socio_vigente.id}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()["membresia"]
    assert body["estado"] == "Vigente"
    assert body["fecha_vencimiento"] == (vencimiento + timedelta(days=10)).isoformat()
    assert body["dias_suspension"] is None
    assert body["fecha_suspension"] is None


def test_reanudar_sin_extender(client, db, socio_vigente, admin_headers):
    m = db.query(models.Membresia).filter(models.Membresia.socio_id == socio_vigente.id).first()
    vencimiento = m.fecha_vencimiento
    client.post("/api/admin/membresias/pausar", json={"socio_id": socio_vigente.id, "dias": 5}, headers=admin_headers)
    r = client.post("/api/admin/membresias/reanudar", json={
        "socio_id": socio_vigente.id, "extender_vencimiento": False,
    }, headers=admin_headers)
    assert r.json()["membresia"]["fecha_vencimiento"] == vencimiento.isoformat()


def test_pausar_dias_invalidos(client, socio_vigente, admin_headers):
    r = client.post("/api/admin/membresias/pausar", json={"socio_id": socio_vigente.id, "dias": 0}, headers=admin_headers)
    assert r.status_code == 400


def test_pausar_sin_vigente(client, socio, admin_headers):
    r = client.post("/api/admin/membresias/pausar", json={"socio_id": socio.id, "dias": 5}, headers=admin_headers)
    assert r.status_code == 409


def test_reanudar_sin_suspendida(client, socio_vigente, admin_headers):
    r = client.post("/api/admin/membresias/reanudar", json={"socio_id": socio_vigente.id}, headers=admin_headers)
    assert r.status_code == 409


def test_cancelar(client, socio_vigente, admin_headers, socio_headers):
    r = client.post("/api/admin/membresias/cancelar", json={"socio_id": socio_vigente.id}, headers=admin_headers)
    assert r.status_code == 400

    r = client.post("/api/admin/membresias/cancelar", json={
        "socio_id": socio_vigente.id, "motivo": "Cambio de ciudad",
    }, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["membresia"]["estado"] == "Cancelada"
    assert client.get("/api/socio/membresia", headers=socio_headers).json() is None

    r = client.post("/api/admin/membresias/cancelar", json={
        "socio_id": socio_vigente.id, "motivo": "otra vez",
    }, headers=admin_headers)
    assert r.status_code == 409


def test_expirar_vencidas(client, db, socio, plan, admin_headers):
    hace_40 = date.today() - timedelta(days=40)
    dar_membresia(db, socio, plan, inicio=hace_40, vencimiento=hace_40 + timedelta(days=30))
    otro = crear_socio(db, "111111111", "otro@correo.cl")
    dar_membresia(db, otro, plan)

    r = client.post("/api/admin/membresias/expirar", headers=admin_headers)
    assert r.json()["expiradas"] == 1
    db.expire_all()
    estados = {m.socio_id: m.estado for m in db.query(models.Membresia).all()}
    assert estados == {socio.id: "Vencida", otro.id: "Vigente"}


def test_vence_hoy_sigue_vigente(db, socio, plan):
    dar_membresia(db, socio, plan, inicio=date.today() - timedelta(days=30), vencimiento=date.today())
    assert memberships.expirar_vencidas(db)["expiradas"] == 0


def test_planes_crud(client, db, admin_headers):
    r = client.post("/api/admin/membresias", json={
        "nombre_plan": "Anual", "precio": 250000, "duracion_dias": 365,
    }, headers=admin_headers)
    assert r.status_code == 201
    plan_id = r.json()["id"]

    r = client.post("/api/admin/membresias", json={
        "nombre_plan": "Semanal", "precio": 9000, "duracion_dias": 7,
    }, headers=admin_headers)
    assert [p["nombre_plan"] for p in client.get("/api/admin/membresias", headers=admin_headers).json()] == ["Semanal", "Anual"]

    r = client.put(f"/api/admin/membresias/{plan_id}", json={"precio": 240000}, headers=admin_headers)
    assert r.json()["precio"] == 240000
    assert r.json()["duracion_dias"] == 365

    r = client.delete(f"/api/admin/membresias/{plan_id}", headers=admin_headers)
    assert r.status_code == 200
    db.expire_all()
    assert db.get(models.PlanMembresia, plan_id).activo is False


def test_expire_offer(client, db, admin_headers):
    plan = models.PlanMembresia(
        nombre_plan="Promo", precio=24000, duracion_dias=30, tipo_plan="Oferta",
        descuento=20, fecha_fin_oferta=date.today() + timedelta(days=3),
    )
    db.add(plan)
    db.commit()

    r = client.post("/api/admin/membresias/expire-offer", json={"plan_id": plan.id}, headers=admin_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["precio"] == 30000
    assert body["tipo_plan"] == "Normal"
    assert body["descuento"] == 0
    assert body["fecha_fin_oferta"] is None

    notifs = client.get("/api/notificaciones", headers=admin_headers).json()
    assert any(n["tipo_evento"] == "oferta_expirada" for n in notifs)

    r = client.post("/api/admin/membresias/expire-offer", json={"plan_id": plan.id}, headers=admin_headers)
    assert r.status_code == 409


def test_expire_offer_plan_inexistente(client, admin_headers):
    r = client.post("/api/admin/membresias/expire-offer", json={"plan_id": 999}, headers=admin_headers)
    assert r.status_code == 404


def test_barrido_revierte_ofertas_vencidas(db):
    plan = models.PlanMembresia(
        nombre_plan="Promo", precio=15000, duracion_dias=30, tipo_plan="Oferta",
        descuento=50, fecha_fin_oferta=date.today() - timedelta(days=1),
    )
    db.add(plan)
    db.commit()
    assert memberships.expirar_vencidas(db)["ofertas_revertidas"] == 1
    db.refresh(plan)
    assert plan.precio == 30000
    assert plan.tipo_plan == "Normal"
