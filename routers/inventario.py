import logging
from datetime import datetime, timedelta
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import IntegrityError

import models
import schemas
import database
import notifications
from security import require_roles, ROL_ADMIN

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", dependencies=[Depends(require_roles(ROL_ADMIN))])

EVENTO_STOCK_CRITICO = "StockCritico"
EVENTO_STOCK_BAJO = "StockBajo"
VENTANA_AVISO_STOCK = timedelta(hours=24)
CLIENTE_PUBLICO = "Venta al Público"


def nivel_stock(producto):
    """StockCritico si no supera el mínimo, StockBajo si no supera 1.5 veces el mínimo"""
    if producto.stock_minimo is None or producto.stock_minimo <= 0:
        return None
    if producto.stock_actual <= producto.stock_minimo:
        return EVENTO_STOCK_CRITICO
    if producto.stock_actual <= producto.stock_minimo * 1.5:
        return EVENTO_STOCK_BAJO
    return None


def avisar_stock(db: Session, producto):
    """Crea un aviso de stock salvo que ya exista uno sin leer de las últimas 24 horas"""
    evento = nivel_stock(producto)
    if not evento:
        return None

    titulo = "Stock crítico" if evento == EVENTO_STOCK_CRITICO else "Stock bajo"
    reciente = notifications.filtro_destinatario(
        db.query(models.Notificacion), notifications.TIPO_ADMIN, None
    ).filter(
        models.Notificacion.tipo_evento == evento,
        models.Notificacion.leida == False,
        models.Notificacion.titulo == f"{titulo}: {producto.nombre_producto}",
        models.Notificacion.fecha_creacion >= datetime.now() - VENTANA_AVISO_STOCK
    ).first()
    if reciente:
        return None

    return notifications.notificar_admin(
        db, evento, f"{titulo}: {producto.nombre_producto}",
        f"Quedan {producto.stock_actual} unidades (mínimo {producto.stock_minimo})"
    )


def _avisar_y_guardar(db: Session, productos):
    avisos = [avisar_stock(db, p) for p in productos]
    if any(avisos):
        database.guardar_cambios(db, "registrar avisos de stock")


# --- CATEGORÍAS ---
@router.get("/categorias", response_model=List[schemas.CategoriaResponse], tags=["Inventario"])
def get_categorias(db: Session = Depends(database.get_db)):
    vistas = {}
    for c in db.query(models.CategoriaInventario).order_by(models.CategoriaInventario.id).all():
        vistas.setdefault(c.nombre_categoria.strip().lower(), c)
    return sorted(vistas.values(), key=lambda c: c.nombre_categoria)


# --- INVENTARIO ---
@router.get("/inventario", response_model=List[schemas.ProductoResponse], tags=["Inventario"])
def get_inventario(db: Session = Depends(database.get_db)):
    return db.query(models.Producto).options(joinedload(models.Producto.categoria)).order_by(
        models.Producto.nombre_producto
    ).all()


def _validar_producto(db: Session, data: dict):
    if "categoria_id" in data:
        if not db.query(models.CategoriaInventario).filter(models.CategoriaInventario.id == data["categoria_id"]).first():
            raise HTTPException(status_code=404, detail="Categoría no encontrada")
    for campo in ("stock_actual", "stock_minimo", "precio_venta"):
        if data.get(campo) is not None and data[campo] < 0:
            raise HTTPException(status_code=400, detail=f"El campo {campo} no puede ser negativo")


@router.post("/inventario", status_code=201, response_model=schemas.ProductoResponse, tags=["Inventario"])
def create_producto(data: schemas.ProductoCreate, db: Session = Depends(database.get_db)):
    valores = data.model_dump()
    _validar_producto(db, valores)
    producto = models.Producto(**valores)
    db.add(producto)
    database.guardar_cambios(db, "crear el producto")
    db.refresh(producto)
    _avisar_y_guardar(db, [producto])
    logger.info(f"Producto creado: {producto.id} ({producto.nombre_producto})")
    return producto


@router.put("/inventario/{id}", response_model=schemas.ProductoResponse, tags=["Inventario"])
def update_producto(id: int, data: schemas.ProductoUpdate, db: Session = Depends(database.get_db)):
    producto = db.query(models.Producto).filter(models.Producto.id == id).first()
    if not producto:
        raise HTTPException(status_code=404, detail="Producto no encontrado")

    update_data = data.model_dump(exclude_unset=True)
    _validar_producto(db, update_data)
    for key, value in update_data.items():
        setattr(producto, key, value)
    if producto.stock_actual > 0 and producto.estado == models.PRODUCTO_AGOTADO:
        producto.estado = models.PRODUCTO_DISPONIBLE

    database.guardar_cambios(db, f"actualizar el producto {id}")
    db.refresh(producto)
    _avisar_y_guardar(db, [producto])
    return producto


@router.delete("/inventario/{id}", tags=["Inventario"])
def delete_producto(id: int, db: Session = Depends(database.get_db)):
    producto = db.query(models.Producto).filter(models.Producto.id == id).first()
    if not producto:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    vendido = db.query(models.DetalleVenta).filter(models.DetalleVenta.producto_id == id).first()
    if vendido:
        raise HTTPException(status_code=409, detail="El producto tiene ventas registradas; márcalo como Descontinuado")
    try:
        db.query(models.MovimientoInventario).filter(models.MovimientoInventario.producto_id == id).delete()
        db.delete(producto)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="El producto tiene ventas registradas; márcalo como Descontinuado")
    except Exception as e:
        db.rollback()
        logger.error(f"Error al eliminar el producto {id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error interno al eliminar el producto")
    return {"status": "success"}


@router.get("/productos", response_model=List[schemas.ProductoResponse], tags=["Ventas"])
def get_productos_venta(db: Session = Depends(database.get_db)):
    return db.query(models.Producto).options(joinedload(models.Producto.categoria)).filter(
        models.Producto.estado == models.PRODUCTO_DISPONIBLE,
        models.Producto.stock_actual > 0
    ).order_by(models.Producto.nombre_producto).all()


# --- PUNTO DE VENTA ---
@router.post("/ventas", status_code=201, tags=["Ventas"])
def create_venta(data: schemas.VentaCreate, principal=Depends(require_roles(ROL_ADMIN)), db: Session = Depends(database.get_db)):
    if not data.carrito:
        raise HTTPException(status_code=400, detail="El carrito está vacío")
    if any(item.cantidad <= 0 for item in data.carrito):
        raise HTTPException(status_code=400, detail="Las cantidades deben ser mayores a 0")
    if data.socio_id is not None:
        if not db.query(models.Socio).filter(models.Socio.id == data.socio_id).first():
            raise HTTPException(status_code=404, detail="Socio no encontrado")

    try:
        lineas = []
        pedidos = {}
        total = 0
        for item in data.carrito:
            producto = db.query(models.Producto).filter(models.Producto.id == item.producto_id).first()
            if not producto:
                raise HTTPException(status_code=400, detail=f"Producto {item.producto_id} no encontrado")
            if producto.estado != models.PRODUCTO_DISPONIBLE:
                raise HTTPException(status_code=400, detail=f"{producto.nombre_producto} no está disponible")
            # Un producto repetido en el carrito se valida contra la suma de sus líneas
            pedidos[producto.id] = pedidos.get(producto.id, 0) + item.cantidad
            if producto.stock_actual < pedidos[producto.id]:
                raise HTTPException(status_code=400, detail=f"Stock insuficiente para {producto.nombre_producto}")
            if producto.precio_venta is None:
                raise HTTPException(status_code=400, detail=f"{producto.nombre_producto} no tiene precio de venta")

            # El precio sale siempre del inventario, nunca del cliente
            subtotal = producto.precio_venta * item.cantidad
            total += subtotal
            lineas.append((producto, item.cantidad, subtotal))

        venta = models.Venta(
            socio_id=data.socio_id,
            monto_total=total,
            metodo_pago=data.metodo_pago,
            usuario_registro=principal.usuario.id,
            tipo_venta="Producto",
        )
        db.add(venta)
        db.flush()
        venta.numero_comprobante = f"VTA-{venta.id:05d}"

        for producto, cantidad, subtotal in lineas:
            db.add(models.DetalleVenta(
                venta_id=venta.id,
                producto_id=producto.id,
                cantidad=cantidad,
                precio_unitario=producto.precio_venta,
                subtotal=subtotal,
            ))
            producto.stock_actual -= cantidad
            if producto.stock_actual == 0:
                producto.estado = models.PRODUCTO_AGOTADO
            db.add(models.MovimientoInventario(
                producto_id=producto.id,
                tipo_movimiento="Salida",
                cantidad=cantidad,
                motivo=f"Venta TPV #{venta.id}",
                usuario_registro=principal.usuario.id,
            ))
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error al registrar la venta: {str(e)}")
        raise HTTPException(status_code=500, detail="Error interno al registrar la venta")

    _avisar_y_guardar(db, list({p.id: p for p, _, _ in lineas}.values()))
    logger.info(f"Venta {venta.id} registrada por ${total:,.0f}")
    return {
        "status": "success",
        "venta_id": venta.id,
        "numero_comprobante": venta.numero_comprobante,
        "monto_total": total,
    }


@router.get("/ventas/historial", tags=["Ventas"])
def get_historial_ventas(db: Session = Depends(database.get_db)):
    ventas = db.query(models.Venta).options(
        joinedload(models.Venta.socio), joinedload(models.Venta.registrado_por)
    ).filter(models.Venta.tipo_venta == "Producto").order_by(
        models.Venta.fecha_venta.desc(), models.Venta.id.desc()
    ).limit(50).all()
    return [{
        "id": v.id,
        "numero_comprobante": v.numero_comprobante,
        "fecha_venta": v.fecha_venta,
        "monto_total": v.monto_total,
        "metodo_pago": v.metodo_pago,
        "cliente": v.socio.nombre_completo if v.socio else CLIENTE_PUBLICO,
        "registrado_por": v.registrado_por.nombre_completo if v.registrado_por else None,
    } for v in ventas]


@router.get("/ventas/{venta_id}", tags=["Ventas"])
def get_venta(venta_id: int, db: Session = Depends(database.get_db)):
    venta = db.query(models.Venta).options(
        joinedload(models.Venta.socio),
        joinedload(models.Venta.detalles).joinedload(models.DetalleVenta.producto)
    ).filter(models.Venta.id == venta_id).first()
    if not venta:
        raise HTTPException(status_code=404, detail="Venta no encontrada")

    return {
        "id": venta.id,
        "numero_comprobante": venta.numero_comprobante,
        "fecha_venta": venta.fecha_venta,
        "monto_total": venta.monto_total,
        "metodo_pago": venta.metodo_pago,
        "cliente": venta.socio.nombre_completo if venta.socio else CLIENTE_PUBLICO,
        "rut_cliente": venta.socio.rut if venta.socio else None,
        "detalles": [{
            "producto_id": d.producto_id,
            "nombre_producto": d.producto.nombre_producto if d.producto else None,
            "cantidad": d.cantidad,
            "precio_unitario": d.precio_unitario,
            "subtotal": d.subtotal,
        } for d in venta.detalles],
    }
