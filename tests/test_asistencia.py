from datetime import datetime, timedelta

import models
from conftest import crear_socio, dar_membresia


def _marcar(client, headers, socio_id, tipo):
    return client.post("/api/admin/asistencia/marcar", json={"socio_id": socio_id, "tipo": tipo}, headers=headers)


def test_entrada_y_salida(client, socio, admin_headers):
    r = _marcar(client, admin_headers, socio.id, "entrada")
    assert r.status_code == 200
    assert r.json()["fecha_hora_salida"] is None

    assert _marcar(client, admin_headers, socio.id, "entrada").status_code == 409

    r = _marcar(client, admin_headers, socio.id, "salida")
    assert r.status_code == 200
    assert r.json()["fecha_hora_salida"] is not None

    assert _marcar(client, admin_headers, socio.id, "salida").status_code == 409
    # Tras salir puede volver a entrar el mismo día
    assert _marcar(client, admin_headers, socio.id, "entrada").status_code == 200


def test_marcar_validaciones(client, socio, admin_headers):
    assert _marcar(client, admin_headers, 999, "entrada").status_code == 404
    assert _marcar(client, admin_headers, socio.id, "pausa").status_code == 400


def test_listado_ordena_presentes_primero(client, db, plan, admin_headers):
    ana = crear_socio(db, "111111111", "ana@correo.cl", nombre="Ana", apellido="Alba")
    zoe = crear_socio(db, "123456785", "zoe@correo.cl", nombre="Zoe", apellido="Zúñiga")
    inactivo = crear_socio(db, "76543216", "ina@correo.cl", nombre="Iván", apellido="Inactivo")
    inactivo.estado_socio = models.SOCIO_INACTIVO
    db.commit()
    dar_membresia(db, zoe, plan)

    _marcar(client, admin_headers, zoe.id, "entrada")
    filas = client.get("/api/admin/asistencia/socios", headers=admin_headers).json()
    assert [f["id"] for f in filas] == [zoe.id, ana.id]
    assert filas[0]["en_gimnasio"] is True
    assert filas[0]["plan"] == "Mensual"
    assert filas[0]["estado_membresia"] == "Vigente"
    assert filas[1]["en_gimnasio"] is False
    assert filas[1]["plan"] is None


def test_historial_ultimos_30_dias(client, db, socio, admin_headers):
    ahora = datetime.now()
    for dias in (1, 10, 45):
        ingreso = ahora - timedelta(days=dias)
        db.add(models.Asistencia(socio_id=socio.id, fecha_hora_ingreso=ingreso, fecha_hora_salida=ingreso + timedelta(minutes=90)))
    db.commit()

    historial = client.get(f"/api/admin/asistencia/historial/{socio.id}", headers=admin_headers).json()
    assert len(historial) == 2
    assert historial[0]["fecha_hora_ingreso"] > historial[1]["fecha_hora_ingreso"]
    assert historial[0]["minutos"] == 90
