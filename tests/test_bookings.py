from datetime import date, time, timedelta

import pytest
from fastapi import HTTPException

import models
import bookings
from conftest import proxima_fecha, crear_socio, crear_clase, dar_membresia


def _codigo(r):
    return r.json()["detail"]["code"]


def test_reserva_exitosa_socio(client, db, socio_vigente, socio_headers, clase):
    fecha = proxima_fecha("Lunes")
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": fecha.isoformat()}, headers=socio_headers)
    assert r.status_code == 201
    reserva = r.json()["reserva"]
    assert reserva["estado"] == "Reservada"
    assert reserva["fecha_clase"] == fecha.isoformat()

    eventos = [n.tipo_evento for n in db.query(models.Notificacion).all()]
    assert eventos.count("reserva_creada") == 2


def test_reserva_sin_membresia(client, db, socio, socio_headers, clase):
    fecha = proxima_fecha("Lunes")
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": fecha.isoformat()}, headers=socio_headers)
    assert r.status_code == 400
    assert _codigo(r) == bookings.MEMBRESIA_INACTIVA
    assert db.query(models.ReservaClase).count() == 0

    # Avisos a administración y al socio quedan guardados pese al rechazo
    tipos = {n.tipo_usuario for n in db.query(models.Notificacion).filter(models.Notificacion.tipo_evento == "reserva_rechazada")}
    assert tipos == {"Admin", "Socio"}


def test_reserva_con_membresia_vencida(client, db, socio, socio_headers, plan, clase):
    hace_40 = date.today() - timedelta(days=40)
    dar_membresia(db, socio, plan, inicio=hace_40, vencimiento=date.today() - timedelta(days=1))
    fecha = proxima_fecha("Lunes")
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": fecha.isoformat()}, headers=socio_headers)
    assert _codigo(r) == bookings.MEMBRESIA_INACTIVA


def test_reserva_con_membresia_suspendida(client, db, socio, socio_headers, plan, clase):
    dar_membresia(db, socio, plan, estado=models.MEMBRESIA_SUSPENDIDA)
    fecha = proxima_fecha("Lunes")
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": fecha.isoformat()}, headers=socio_headers)
    assert _codigo(r) == bookings.MEMBRESIA_INACTIVA


def test_reserva_duplicada(client, db, socio_vigente, socio_headers, clase):
    payload = {"clase_id": clase.id, "fecha_clase": proxima_fecha("Lunes").isoformat()}
    assert client.post("/api/socio/clases", json=payload, headers=socio_headers).status_code == 201
    r = client.post("/api/socio/clases", json=payload, headers=socio_headers)
    assert r.status_code == 400
    assert _codigo(r) == bookings.DUPLICADA


def test_reserva_cancelada_permite_reservar_de_nuevo(client, db, socio_vigente, socio_headers, clase):
    payload = {"clase_id": clase.id, "fecha_clase": proxima_fecha("Lunes").isoformat()}
    reserva_id = client.post("/api/socio/clases", json=payload, headers=socio_headers).json()["reserva"]["id"]
    assert client.delete(f"/api/socio/clases/reservas/{reserva_id}", headers=socio_headers).status_code == 200
    assert client.post("/api/socio/clases", json=payload, headers=socio_headers).status_code == 201


def test_sin_cupo(client, db, plan, entrenador, admin_headers):
    clase = crear_clase(db, entrenador, cupo=1)
    fecha = proxima_fecha("Lunes")
    primero = crear_socio(db, "111111111", "uno@correo.cl")
    segundo = crear_socio(db, "123456785", "dos@correo.cl")
    dar_membresia(db, primero, plan)
    dar_membresia(db, segundo, plan)

    url = f"/api/admin/clases/{clase.id}/reservas"
    assert client.post(url, json={"socio_id": primero.id, "fecha_clase": fecha.isoformat()}, headers=admin_headers).status_code == 201
    r = client.post(url, json={"socio_id": segundo.id, "fecha_clase": fecha.isoformat()}, headers=admin_headers)
    assert r.status_code == 400
    assert _codigo(r) == bookings.SIN_CUPO

    # Otra fecha de la misma clase tiene su propio cupo
    otra = fecha + timedelta(days=7)
    assert client.post(url, json={"socio_id": segundo.id, "fecha_clase": otra.isoformat()}, headers=admin_headers).status_code == 201


def test_fecha_no_coincide_con_dia(client, socio_vigente, socio_headers, clase):
    fecha = proxima_fecha("Martes")
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": fecha.isoformat()}, headers=socio_headers)
    assert r.status_code == 400
    assert _codigo(r) == bookings.CLASE_NO_DISPONIBLE


def test_fecha_pasada(client, socio_vigente, socio_headers, clase):
    fecha = proxima_fecha("Lunes") - timedelta(days=14)
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": fecha.isoformat()}, headers=socio_headers)
    assert _codigo(r) == bookings.CLASE_NO_DISPONIBLE


def test_clase_inactiva(client, db, socio_vigente, socio_headers, clase):
    clase.activa = False
    db.commit()
    r = client.post("/api/socio/clases", json={"clase_id": clase.id, "fecha_clase": proxima_fecha("Lunes").isoformat()}, headers=socio_headers)
    assert _codigo(r) == bookings.CLASE_NO_DISPONIBLE


def test_clase_inexistente(client, socio_vigente, socio_headers):
    r = client.post("/api/socio/clases", json={"clase_id": 999, "fecha_clase": proxima_fecha("Lunes").isoformat()}, headers=socio_headers)
    assert r.status_code == 404


def test_clase_temporal_fuera_de_rango(db, socio_vigente, entrenador):
    inicio = proxima_fecha("Lunes")
    clase = crear_clase(
        db, entrenador, tipo_clase="Temporal", numero_semanas=2,
        fecha_inicio=inicio, fecha_fin=inicio + timedelta(days=14),
    )
    assert bookings.reservar_clase(db, clase.id, socio_vigente.id, inicio + timedelta(days=7)).estado == "Reservada"
    with pytest.raises(HTTPException) as exc:
        bookings.reservar_clase(db, clase.id, socio_vigente.id, inicio + timedelta(days=21))
    assert exc.value.detail["code"] == bookings.CLASE_NO_DISPONIBLE


def test_cancelar_reserva_ajena(client, db, socio_vigente, socio_headers, clase, plan):
    otro = crear_socio(db, "111111111", "otro@correo.cl")
    dar_membresia(db, otro, plan)
    reserva = bookings.reservar_clase(db, clase.id, otro.id, proxima_fecha("Lunes"))
    r = client.delete(f"/api/socio/clases/reservas/{reserva.id}", headers=socio_headers)
    assert r.status_code == 403


def test_cancelar_reserva_ya_cancelada(client, db, socio_vigente, socio_headers, clase):
    reserva_id = client.post("/api/socio/clases", json={
        "clase_id": clase.id, "fecha_clase": proxima_fecha("Lunes").isoformat(),
    }, headers=socio_headers).json()["reserva"]["id"]
    client.delete(f"/api/socio/clases/reservas/{reserva_id}", headers=socio_headers)
    r = client.delete(f"/api/socio/clases/reservas/{reserva_id}", headers=socio_headers)
    assert r.status_code == 409


def test_listado_socio(client, db, socio_vigente, socio_headers, entrenador):
    martes = crear_clase(db, entrenador, dia="Martes", nombre="Yoga")
    lunes = crear_clase(db, entrenador, dia="Lunes", nombre="Boxeo", inicio=time(18, 0), fin=time(19, 0))
    client.post("/api/socio/clases", json={"clase_id": martes.id, "fecha_clase": proxima_fecha("Martes").isoformat()}, headers=socio_headers)

    body = client.get("/api/socio/clases", headers=socio_headers).json()
    assert [c["nombre_clase"] for c in body["clases"]] == ["Boxeo", "Yoga"]
    assert {c["nombre_clase"]: c["reservas_proximas"] for c in body["clases"]} == {"Boxeo": 0, "Yoga": 1}
    assert [r["clase_id"] for r in body["mis_reservas"]] == [martes.id]
    assert lunes.id not in [r["clase_id"] for r in body["mis_reservas"]]


def test_admin_estado_reserva(client, db, socio_vigente, clase, admin_headers):
    reserva = bookings.reservar_clase(db, clase.id, socio_vigente.id, proxima_fecha("Lunes"))
    url = f"/api/admin/clases/{clase.id}/reservas/{reserva.id}"
    r = client.put(url, json={"estado": "Asistió"}, headers=admin_headers)
    assert r.json()["reserva"]["estado"] == "Asistió"
    assert client.put(url, json={"estado": "Perdida"}, headers=admin_headers).status_code == 400

    assert client.delete(url, headers=admin_headers).status_code == 200
    assert client.delete(url, headers=admin_headers).status_code == 409


def test_admin_listado_agrupado(client, db, entrenador, admin_headers):
    r = client.post("/api/admin/clases", json={
        "nombre_clase": "Pilates", "entrenador_id": entrenador.id,
        "dias_semana": ["Miércoles", "Lunes"], "hora_inicio": "08:00:00", "hora_fin": "09:00:00",
        "cupo_maximo": 12,
    }, headers=admin_headers)
    assert r.status_code == 201
    assert len(r.json()["ids"]) == 2

    grupos = client.get("/api/admin/clases", headers=admin_headers).json()
    assert len(grupos) == 1
    assert grupos[0]["dias_semana"] == ["Lunes", "Miércoles"]


def test_admin_clase_temporal(client, db, entrenador, admin_headers):
    inicio = proxima_fecha("Lunes")
    r = client.post("/api/admin/clases", json={
        "nombre_clase": "Taller", "entrenador_id": entrenador.id, "dias_semana": ["Lunes"],
        "hora_inicio": "10:00:00", "hora_fin": "11:00:00", "tipo_clase": "Temporal",
        "numero_semanas": 4, "fecha_inicio": inicio.isoformat(),
    }, headers=admin_headers)
    clase_id = r.json()["ids"][0]
    detalle = client.get(f"/api/admin/clases/{clase_id}", headers=admin_headers).json()
    assert detalle["fecha_fin"] == (inicio + timedelta(days=28)).isoformat()
    assert detalle["cupos_ocupados"] == 0


def test_admin_clase_horario_invalido(client, entrenador, admin_headers):
    r = client.post("/api/admin/clases", json={
        "nombre_clase": "Mal", "entrenador_id": entrenador.id, "dias_semana": ["Funday"],
        "hora_inicio": "10:00:00", "hora_fin": "11:00:00",
    }, headers=admin_headers)
    assert r.status_code == 400


def test_admin_baja_clase_notifica_entrenador(client, db, clase, entrenador, admin_headers):
    assert client.delete(f"/api/admin/clases/{clase.id}", headers=admin_headers).status_code == 200
    db.expire_all()
    assert db.get(models.Clase, clase.id).activa is False
    avisos = db.query(models.Notificacion).filter(
        models.Notificacion.tipo_usuario == "Entrenador",
        models.Notificacion.usuario_id == entrenador.id,
        models.Notificacion.tipo_evento == "clase_eliminada",
    ).count()
    assert avisos == 1


def test_cronograma_semana(client, db, socio_vigente, clase, admin_headers):
    fecha = proxima_fecha("Lunes")
    bookings.reservar_clase(db, clase.id, socio_vigente.id, fecha)
    bookings.reservar_clase(db, clase.id, socio_vigente.id, fecha + timedelta(days=7))
    body = client.get(f"/api/admin/cronograma?fecha={fecha.isoformat()}", headers=admin_headers).json()
    assert body["semana_inicio"] == fecha.isoformat()
    assert body["clases"][0]["cupos_ocupados"] == 1
