import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configuración de logs
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

import database
import memberships
from routers import (
    auth, socios, membresias, clases, asistencia, recepcion,
    inventario, pagos, entrenador, socio, notificaciones,
)

app = FastAPI(
    title="Gimnasio Back Office",
    description="Gestión de socios, membresías, clases, ventas y asistencia",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(socios.router)
app.include_router(membresias.router)
app.include_router(clases.router)
app.include_router(asistencia.router)
app.include_router(recepcion.admin_router)
app.include_router(recepcion.entrenador_router)
app.include_router(inventario.router)
app.include_router(pagos.admin_router)
app.include_router(pagos.router)
app.include_router(entrenador.router)
app.include_router(socio.router)
app.include_router(notificaciones.router)


@app.on_event("startup")
def startup_event():
    """
    Crea las tablas, siembra los catálogos y pasa a Vencida las membresías
    cuyo plazo terminó mientras el servidor estaba detenido.
    """
    logger.info("--- INICIANDO BASE DE DATOS ---")
    database.init_db()
    db = database.SessionLocal()
    try:
        resultado = memberships.expirar_vencidas(db)
        logger.info(f"Barrido inicial de vencimientos: {resultado}")
    except Exception as e:
        logger.warning(f"No se pudo ejecutar el barrido de vencimientos: {e}")
    finally:
        db.close()


@app.get("/", tags=["Sistema"])
def api_root():
    return {"status": "Gimnasio API is running", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
