from datetime import date, datetime, time, timedelta

import models
from conftest import proxima_fecha, crear_entrenador, crear_socio, crear_clase, dar_membresia


def _clase_json(**extra):
    data = {"nombre_clase": "Yoga", "dia_semana": "Lunes", "hora_inicio": "10:00", "hora_fin": "11:00", "cupo_maximo": 15}
    data.update(extra)
    return data


def test_perfil(client, entrenador_headers):
    perfil = client.get("/api/entrenador/profile", headers=entrenador_headers).json()
    assert perfil["nombre_completo"] == "Pedro Soto"
    assert perfil["especialidad"] == "Funcional"


def test_socio_no_accede_al_portal(client, socio_headers):
    assert client.get("/api/entrenador/profile", headers=socio_headers).status_code == 403


def test_crear_clase_grupal(client, entrenador_headers):
    r = client.post("/api/entrenador/clases", json=_clase_json(), headers=entrenador_headers)
    assert r.status_code == 201
    assert r.json()["clase"]["cupo_maximo"] == 15

    clases = client.get("/api/entrenador/clases", headers=entrenador_headers).json()
    assert [(c["nombre_clase"], c["tipo"], c["cupos_disponibles"]) for c in clases] == [("Yoga", "Grupal", 15)]


def test_clase_solapada_con_otra_propia(client, clase, entrenador_headers):
    r = client.post("/api/entrenador/clases", json=_clase_json(hora_inicio="09:30", hora_fin="10:30"), headers=entrenador_headers)
    assert r.status_code == 409
    # Solo tocarse en un extremo no es solape
    r = client.post("/api/entrenador/clases", json=_clase_json(), headers=entrenador_headers)
    assert r.status_code == 201


def test_horario_invalido(client, entrenador_headers):
    r = client.post("/api/entrenador/clases", json=_clase_json(hora_inicio="11:00", hora_fin="10:00"), headers=entrenador_headers)
    assert r.status_code == 400
    r = client.post("/api/entrenador/clases", json=_clase_json(dia_semana="Feriado"), headers=entrenador_headers)
    assert r.status_code == 400


def test_clase_personal_reserva_al_socio(client, db, socio_vigente, entrenador_headers):
    fecha = proxima_fecha("Martes")
    r = client.post("/api/entrenador/clases", json=_clase_json(
        nombre_clase="Personal Carla", dia_semana="Martes", tipo="Personal",
        socio_id=socio_vigente.id, fecha_inicio=fecha.isoformat(), cupo_maximo=8,
    ), headers=entrenador_headers)
    assert r.status_code == 201
    body = r.json()
    assert body["clase"]["cupo_maximo"] == 1
    assert body["reserva_id"] is not None

    reserva = db.get(models.ReservaClase, body["reserva_id"])
    assert reserva.socio_id == socio_vigente.id
    assert reserva.fecha_clase == fecha


def test_clase_personal_sin_membresia_no_se_crea(client, db, socio, entrenador_headers):
    r = client.post("/api/entrenador/clases", json=_clase_json(
        dia_semana="Martes", tipo="Personal", socio_id=socio.id,
        fecha_inicio=proxima_fecha("Martes").isoformat(),
    ), headers=entrenador_headers)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "MEMBRESIA_INACTIVA"

    db.expire_all()
    assert db.query(models.Clase).count() == 0
    assert db.query(models.Notificacion).count() == 0


def test_mover_clase_personal_a_otra_fecha(client, db, socio_vigente, entrenador_headers):
    fecha = proxima_fecha("Martes")
    r = client.post("/api/entrenador/clases", json=_clase_json(
        dia_semana="Martes", tipo="Personal", socio_id=socio_vigente.id, fecha_inicio=fecha.isoformat(),
    ), headers=entrenador_headers)
    clase_id = r.json()["clase"]["id"]

    nueva = fecha + timedelta(days=7)
    r = client.put(f"/api/entrenador/clases/{clase_id}", json={"fecha_inicio": nueva.isoformat()}, headers=entrenador_headers)
    assert r.status_code == 200

    estados = {
        res.fecha_clase: res.estado
        for res in db.query(models.ReservaClase).filter(models.ReservaClase.clase_id == clase_id).all()
    }
    assert estados == {fecha: "Cancelada", nueva: "Reservada"}


def test_clase_de_otro_entrenador(client, db, entrenador_headers):
    otro = crear_entrenador(db, "luis@gym.cl", nombre="Luis")
    ajena = crear_clase(db, otro)
    assert client.get(f"/api/entrenador/clases/{ajena.id}", headers=entrenador_headers).status_code == 403
    assert client.put(f"/api/entrenador/clases/{ajena.id}", json={"cupo_maximo": 5}, headers=entrenador_headers).status_code == 403
    assert client.delete(f"/api/entrenador/clases/{ajena.id}", headers=entrenador_headers).status_code == 403
    assert client.get("/api/entrenador/clases/999", headers=entrenador_headers).status_code == 404


def test_eliminar_clase_borra_reservas(client, db, clase, socio, entrenador_headers):
    db.add(models.ReservaClase(clase_id=clase.id, socio_id=socio.id, fecha_clase=proxima_fecha("Lunes")))
    db.commit()
    assert client.delete(f"/api/entrenador/clases/{clase.id}", headers=entrenador_headers).status_code == 200
    db.expire_all()
    assert db.query(models.Clase).count() == 0
    assert db.query(models.ReservaClase).count() == 0


def test_inscribir_socio_notifica_al_entrenador(client, db, clase, entrenador, socio_vigente, entrenador_headers):
    fecha = proxima_fecha("Lunes")
    r = client.post(f"/api/entrenador/clases/{clase.id}/reservas", json={
        "socio_id": socio_vigente.id, "fecha_clase": fecha.isoformat(),
    }, headers=entrenador_headers)
    assert r.status_code == 201

    reservas = client.get(f"/api/entrenador/clases/{clase.id}/reservas", headers=entrenador_headers).json()
    assert [x["socio_id"] for x in reservas] == [socio_vigente.id]

    avisos = client.get("/api/notificaciones", headers=entrenador_headers).json()
    assert [n["tipo_evento"] for n in avisos] == ["socio_inscrito"]


def test_sesiones_del_entrenador(client, db, entrenador, socio, entrenador_headers):
    manana = date.today() + timedelta(days=1)
    for fecha, estado in ((manana, "Agendada"), (manana, "Cancelada"), (date.today() - timedelta(days=3), "Agendada")):
        db.add(models.SesionPersonal(
            socio_id=socio.id, entrenador_id=entrenador.id, fecha_sesion=fecha,
            hora_inicio=time(8, 0), hora_fin=time(9, 0), estado=estado,
        ))
    db.commit()
    sesiones = client.get("/api/entrenador/sesiones", headers=entrenador_headers).json()
    assert len(sesiones) == 1
    assert sesiones[0]["nombre_socio"] == socio.nombre_completo
    assert sesiones[0]["dia_semana"] == models.DIAS_SEMANA[manana.weekday()]


def test_buscar_socios(client, db, socio, entrenador_headers):
    crear_socio(db, "111111111", "beto@correo.cl", nombre="Alberto", apellido="Pérez")
    assert client.get("/api/entrenador/socios?search=ca", headers=entrenador_headers).status_code == 400
    encontrados = client.get("/api/entrenador/socios?search=car", headers=entrenador_headers).json()
    assert [s["email"] for s in encontrados] == ["carla@correo.cl"]


def test_resumen_de_socios(client, db, clase, socio, plan, entrenador_headers):
    dar_membresia(db, socio, plan)
    lunes = proxima_fecha("Lunes")
    db.add(models.ReservaClase(clase_id=clase.id, socio_id=socio.id, fecha_clase=lunes, estado="Asistió"))
    db.add(models.ReservaClase(clase_id=clase.id, socio_id=socio.id, fecha_clase=lunes + timedelta(days=7), estado="Cancelada"))
    db.commit()

    resumen = client.get("/api/entrenador/socios", headers=entrenador_headers).json()
    assert resumen == [{
        "id": socio.id, "nombre_completo": socio.nombre_completo, "email": socio.email,
        "total_reservas": 1, "asistencias": 1, "plan": "Mensual",
    }]


def test_horario_semanal(client, db, clase, entrenador, socio, entrenador_headers):
    lunes = proxima_fecha("Lunes")
    crear_clase(db, entrenador, dia="Martes", nombre="Pasada", tipo_clase="Temporal",
                fecha_inicio=lunes - timedelta(days=14), fecha_fin=lunes - timedelta(days=7))
    crear_clase(db, entrenador, dia="Jueves", nombre="Suspendida", activa=False)
    db.add(models.ReservaClase(clase_id=clase.id, socio_id=socio.id, fecha_clase=lunes))
    for fecha in (lunes + timedelta(days=2), lunes + timedelta(days=9)):
        db.add(models.SesionPersonal(
            socio_id=socio.id, entrenador_id=entrenador.id, fecha_sesion=fecha,
            hora_inicio=time(8, 0), hora_fin=time(9, 0),
        ))
    db.commit()

    r = client.get(f"/api/entrenador/horario?fecha={(lunes + timedelta(days=3)).isoformat()}", headers=entrenador_headers)
    assert r.status_code == 200
    horario = r.json()
    assert horario["semana_inicio"] == lunes.isoformat()
    assert horario["semana_fin"] == (lunes + timedelta(days=6)).isoformat()
    assert [(c["nombre_clase"], c["fecha"], c["cupos_disponibles"]) for c in horario["clases"]] == [
        ("Spinning", lunes.isoformat(), 9)
    ]
    assert [s["fecha"] for s in horario["sesiones_personales"]] == [(lunes + timedelta(days=2)).isoformat()]
    assert horario["sesiones_personales"][0]["nombre_socio"] == socio.nombre_completo
    assert horario["sesiones_personales"][0]["hora_inicio"] == "08:00:00"


def test_perfil_de_socio_para_el_entrenador(client, db, clase, socio, plan, admin, entrenador_headers):
    hoy = date.today()
    dar_membresia(db, socio, plan, estado="Vencida", inicio=hoy - timedelta(days=60), vencimiento=hoy - timedelta(days=30))
    actual = dar_membresia(db, socio, plan)
    for i in range(12):
        db.add(models.Pago(
            socio_id=socio.id, monto_pago=1000 * (i + 1), fecha_pago=datetime(2024, 1, i + 1, 10, 0),
            usuario_registro=admin.id, concepto=f"Cuota {i + 1}",
        ))
    db.add(models.ReservaClase(clase_id=clase.id, socio_id=socio.id, fecha_clase=proxima_fecha("Lunes")))
    db.commit()

    perfil = client.get(f"/api/entrenador/socios/perfil/{socio.id}", headers=entrenador_headers).json()
    assert perfil["rut"] == "12.345.678-5"
    assert perfil["membresia"]["id"] == actual.id
    assert perfil["membresia"]["precio_plan"] == 30000
    assert len(perfil["historial_pagos"]) == 10
    assert perfil["historial_pagos"][0]["concepto"] == "Cuota 12"
    assert perfil["historial_pagos"][0]["registrado_por"] == "Ana Rojas"
    assert [(r["nombre_clase"], r["entrenador"]) for r in perfil["historial_reservas"]] == [("Spinning", "Pedro Soto")]

    assert client.get("/api/entrenador/socios/perfil/999", headers=entrenador_headers).status_code == 404
