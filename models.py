from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Time, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from database import Base
import datetime

# Estados compartidos por rutas y servicios
SOCIO_ACTIVO = "Activo"
SOCIO_SUSPENDIDO = "Suspendido"
SOCIO_INACTIVO = "Inactivo"

MEMBRESIA_VIGENTE = "Vigente"
MEMBRESIA_SUSPENDIDA = "Suspendida"
MEMBRESIA_CANCELADA = "Cancelada"
MEMBRESIA_VENCIDA = "Vencida"
MEMBRESIAS_ABIERTAS = (MEMBRESIA_VIGENTE, MEMBRESIA_SUSPENDIDA)

RESERVA_RESERVADA = "Reservada"
RESERVA_ASISTIO = "Asistió"
RESERVA_NO_ASISTIO = "No Asistió"
RESERVA_CANCELADA = "Cancelada"
ESTADOS_RESERVA = (RESERVA_RESERVADA, RESERVA_ASISTIO, RESERVA_NO_ASISTIO, RESERVA_CANCELADA)

SESION_AGENDADA = "Agendada"
SESION_CONFIRMADA = "Confirmada"
SESION_COMPLETADA = "Completada"
SESION_CANCELADA = "Cancelada"

PLAN_NORMAL = "Normal"
PLAN_OFERTA = "Oferta"

PRODUCTO_DISPONIBLE = "Disponible"
PRODUCTO_AGOTADO = "Agotado"

INTERCAMBIO_PENDIENTE = "Pendiente"
INTERCAMBIO_APROBADO = "Aprobado"
INTERCAMBIO_RECHAZADO = "Rechazado"

DIAS_SEMANA = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]


class Rol(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True)
    nombre = Column(String(50), unique=True, nullable=False)
    descripcion = Column(String(200), nullable=True)
    usuarios = relationship("Usuario", back_populates="rol")


class Usuario(Base):
    """Personal del gimnasio (administración y entrenadores)."""
    __tablename__ = "usuarios"
    id = Column(Integer, primary_key=True)
    rol_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    nombre_usuario = Column(String(100), unique=True, nullable=False)
    email = Column(String(150), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    nombre = Column(String(100), nullable=False)
    apellido = Column(String(100), nullable=False)
    telefono = Column(String(30), nullable=True)
    activo = Column(Boolean, default=True)
    requiere_cambio_password = Column(Boolean, default=False)
    fecha_creacion = Column(DateTime, default=datetime.datetime.now)
    ultimo_acceso = Column(DateTime, nullable=True)

    rol = relationship("Rol", back_populates="usuarios")
    entrenador = relationship("Entrenador", back_populates="usuario", uselist=False)

    @property
    def nombre_completo(self):
        return f"{self.nombre} {self.apellido}"


class Entrenador(Base):
    __tablename__ = "entrenadores"
    id = Column(Integer, primary_key=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id"), unique=True, nullable=False)
    especialidad = Column(String(100), nullable=True)
    certificaciones = Column(Text, nullable=True)
    biografia = Column(Text, nullable=True)
    foto_url = Column(String, nullable=True)
    activo = Column(Boolean, default=True)

    usuario = relationship("Usuario", back_populates="entrenador")
    clases = relationship("Clase", back_populates="entrenador")
    horarios_recepcion = relationship("HorarioRecepcion", back_populates="entrenador")
    sesiones = relationship("SesionPersonal", back_populates="entrenador")


class Socio(Base):
    __tablename__ = "socios"
    id = Column(Integer, primary_key=True)
    rut = Column(String(20), unique=True, index=True, nullable=False)
    nombre = Column(String(100), nullable=False)
    apellido = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, index=True, nullable=False)
    telefono = Column(String(30), nullable=True)
    fecha_nacimiento = Column(Date, nullable=True)
    direccion = Column(String(200), nullable=True)
    codigo_qr = Column(String(100), nullable=True)
    foto_url = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    estado_socio = Column(String(20), default=SOCIO_ACTIVO)
    requiere_cambio_password = Column(Boolean, default=False)
    fecha_registro = Column(DateTime, default=datetime.datetime.now)

    membresias = relationship("Membresia", back_populates="socio", cascade="all, delete-orphan")
    reservas = relationship("ReservaClase", back_populates="socio", cascade="all, delete-orphan")
    pagos = relationship("Pago", back_populates="socio")
    asistencias = relationship("Asistencia", back_populates="socio", cascade="all, delete-orphan")

    @property
    def nombre_completo(self):
        return f"{self.nombre} {self.apellido}"


# =========================================
# MEMBRESÍAS
# =========================================

class PlanMembresia(Base):
    __tablename__ = "planes_membresia"
    id = Column(Integer, primary_key=True)
    nombre_plan = Column(String(100), nullable=False)
    descripcion = Column(Text, nullable=True)
    precio = Column(Float, nullable=False)
    duracion_dias = Column(Integer, nullable=False, default=30)
    tipo_plan = Column(String(20), default=PLAN_NORMAL)
    beneficios = Column(Text, nullable=True)
    # Porcentaje aplicado sobre el precio original mientras dura la oferta
    descuento = Column(Float, default=0)
    fecha_inicio_oferta = Column(Date, nullable=True)
    fecha_fin_oferta = Column(Date, nullable=True)
    activo = Column(Boolean, default=True)

    membresias = relationship("Membresia", back_populates="plan")


class Membresia(Base):
    __tablename__ = "membresias"
    id = Column(Integer, primary_key=True)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("planes_membresia.id"), nullable=False)
    fecha_inicio = Column(Date, nullable=False)
    fecha_vencimiento = Column(Date, nullable=False)
    estado = Column(String(20), default=MEMBRESIA_VIGENTE, index=True)
    monto_pagado = Column(Float, default=0)
    fecha_suspension = Column(Date, nullable=True)
    dias_suspension = Column(Integer, nullable=True)
    motivo_estado = Column(String(255), nullable=True)
    fecha_creacion = Column(DateTime, default=datetime.datetime.now)

    socio = relationship("Socio", back_populates="membresias")
    plan = relationship("PlanMembresia", back_populates="membresias")
    pagos = relationship("Pago", back_populates="membresia")


# =========================================
# PAGOS Y COMPROBANTES
# =========================================

class Pago(Base):
    __tablename__ = "pagos"
    id = Column(Integer, primary_key=True)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=False, index=True)
    membresia_id = Column(Integer, ForeignKey("membresias.id"), nullable=True)
    monto_pago = Column(Float, nullable=False)
    medio_pago = Column(String(30), default="Efectivo")
    fecha_pago = Column(DateTime, default=datetime.datetime.now)
    usuario_registro = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    concepto = Column(String(255), nullable=True)
    numero_comprobante = Column(String(50), nullable=True)
    estado = Column(String(20), default="Completado")

    socio = relationship("Socio", back_populates="pagos")
    membresia = relationship("Membresia", back_populates="pagos")
    registrado_por = relationship("Usuario")


class Comprobante(Base):
    """Copia inmutable de los datos del pago al momento de emitirlo."""
    __tablename__ = "comprobantes"
    id = Column(Integer, primary_key=True)
    pago_id = Column(Integer, ForeignKey("pagos.id"), nullable=False)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=False)
    membresia_id = Column(Integer, ForeignKey("membresias.id"), nullable=True)
    numero_comprobante = Column(String(50), unique=True, nullable=False)
    fecha_emision = Column(DateTime, default=datetime.datetime.now)
    monto_pago = Column(Float, nullable=False)
    medio_pago = Column(String(30))
    nombre_socio = Column(String(200))
    email_socio = Column(String(150))
    telefono_socio = Column(String(30))
    nombre_plan = Column(String(100))
    duracion_plan = Column(Integer, default=0)
    fecha_inicio = Column(Date, nullable=True)
    fecha_vencimiento = Column(Date, nullable=True)
    concepto = Column(String(255))
    usuario_registro = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    estado = Column(String(20), default="Emitido")


# =========================================
# CLASES Y RESERVAS
# =========================================

class Clase(Base):
    __tablename__ = "clases"
    id = Column(Integer, primary_key=True)
    nombre_clase = Column(String(100), nullable=False)
    descripcion = Column(Text, nullable=True)
    entrenador_id = Column(Integer, ForeignKey("entrenadores.id"), nullable=False)
    dia_semana = Column(String(15), nullable=False)
    hora_inicio = Column(Time, nullable=False)
    hora_fin = Column(Time, nullable=False)
    cupo_maximo = Column(Integer, nullable=False, default=20)
    activa = Column(Boolean, default=True)
    tipo_clase = Column(String(20), default="Indefinida")  # Indefinida / Temporal
    numero_semanas = Column(Integer, nullable=True)
    fecha_inicio = Column(Date, nullable=True)
    fecha_fin = Column(Date, nullable=True)
    categoria = Column(String(50), nullable=True)

    entrenador = relationship("Entrenador", back_populates="clases")
    reservas = relationship("ReservaClase", back_populates="clase", cascade="all, delete-orphan")


class ReservaClase(Base):
    __tablename__ = "reservas_clases"
    id = Column(Integer, primary_key=True)
    clase_id = Column(Integer, ForeignKey("clases.id"), nullable=False, index=True)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=False, index=True)
    fecha_clase = Column(Date, nullable=False)
    estado = Column(String(20), default=RESERVA_RESERVADA)
    fecha_reserva = Column(DateTime, default=datetime.datetime.now)

    clase = relationship("Clase", back_populates="reservas")
    socio = relationship("Socio", back_populates="reservas")


class SesionPersonal(Base):
    __tablename__ = "sesiones_personales"
    id = Column(Integer, primary_key=True)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=False)
    entrenador_id = Column(Integer, ForeignKey("entrenadores.id"), nullable=False)
    fecha_sesion = Column(Date, nullable=False)
    hora_inicio = Column(Time, nullable=False)
    hora_fin = Column(Time, nullable=False)
    estado = Column(String(20), default=SESION_AGENDADA)
    notas = Column(Text, nullable=True)

    socio = relationship("Socio")
    entrenador = relationship("Entrenador", back_populates="sesiones")


# =========================================
# ASISTENCIA
# =========================================

class Asistencia(Base):
    __tablename__ = "asistencias"
    id = Column(Integer, primary_key=True)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=False, index=True)
    fecha_hora_ingreso = Column(DateTime, default=datetime.datetime.now)
    fecha_hora_salida = Column(DateTime, nullable=True)

    socio = relationship("Socio", back_populates="asistencias")


# =========================================
# INVENTARIO Y VENTAS
# =========================================

class CategoriaInventario(Base):
    __tablename__ = "categorias_inventario"
    id = Column(Integer, primary_key=True)
    nombre_categoria = Column(String(100), nullable=False)
    tipo_categoria = Column(String(50), nullable=True)
    descripcion = Column(Text, nullable=True)
    productos = relationship("Producto", back_populates="categoria")


class Producto(Base):
    __tablename__ = "inventario"
    id = Column(Integer, primary_key=True)
    categoria_id = Column(Integer, ForeignKey("categorias_inventario.id"), nullable=False)
    nombre_producto = Column(String(150), nullable=False)
    descripcion = Column(Text, nullable=True)
    precio_venta = Column(Float, nullable=True)
    stock_actual = Column(Integer, default=0)
    stock_minimo = Column(Integer, default=0)
    unidad_medida = Column(String(30), nullable=True)
    estado = Column(String(20), default=PRODUCTO_DISPONIBLE)
    fecha_creacion = Column(DateTime, default=datetime.datetime.now)

    categoria = relationship("CategoriaInventario", back_populates="productos")


class MovimientoInventario(Base):
    __tablename__ = "movimientos_inventario"
    id = Column(Integer, primary_key=True)
    producto_id = Column(Integer, ForeignKey("inventario.id"), nullable=False)
    tipo_movimiento = Column(String(20), nullable=False)  # Entrada / Salida / Ajuste
    cantidad = Column(Integer, nullable=False)
    fecha_movimiento = Column(DateTime, default=datetime.datetime.now)
    motivo = Column(String(255), nullable=True)
    usuario_registro = Column(Integer, ForeignKey("usuarios.id"), nullable=True)


class Venta(Base):
    __tablename__ = "ventas"
    id = Column(Integer, primary_key=True)
    socio_id = Column(Integer, ForeignKey("socios.id"), nullable=True)
    monto_total = Column(Float, nullable=False)
    metodo_pago = Column(String(30), default="Efectivo")
    usuario_registro = Column(Integer, ForeignKey("usuarios.id"), nullable=True)
    numero_comprobante = Column(String(30), nullable=True)
    tipo_venta = Column(String(20), default="Producto")
    comprobante_path = Column(String, nullable=True)
    fecha_venta = Column(DateTime, default=datetime.datetime.now)

    socio = relationship("Socio")
    registrado_por = relationship("Usuario")
    detalles = relationship("DetalleVenta", back_populates="venta", cascade="all, delete-orphan")


class DetalleVenta(Base):
    __tablename__ = "detalle_venta"
    id = Column(Integer, primary_key=True)
    venta_id = Column(Integer, ForeignKey("ventas.id"), nullable=False)
    producto_id = Column(Integer, ForeignKey("inventario.id"), nullable=False)
    cantidad = Column(Integer, nullable=False)
    precio_unitario = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)

    venta = relationship("Venta", back_populates="detalles")
    producto = relationship("Producto")


# =========================================
# NOTIFICACIONES
# =========================================

class Notificacion(Base):
    __tablename__ = "notificaciones"
    id = Column(Integer, primary_key=True)
    tipo_usuario = Column(String(20), nullable=False, index=True)  # Admin / Entrenador / Socio
    usuario_id = Column(Integer, nullable=True, index=True)
    tipo_evento = Column(String(50), nullable=False)
    titulo = Column(String(150), nullable=False)
    mensaje = Column(Text, nullable=False)
    leida = Column(Boolean, default=False)
    fecha_creacion = Column(DateTime, default=datetime.datetime.now)


# =========================================
# RECEPCIÓN
# =========================================

class HorarioRecepcion(Base):
    __tablename__ = "horarios_recepcion"
    id = Column(Integer, primary_key=True)
    entrenador_id = Column(Integer, ForeignKey("entrenadores.id"), nullable=False)
    dia_semana = Column(String(15), nullable=False)
    hora_inicio = Column(Time, nullable=False)
    hora_fin = Column(Time, nullable=False)
    activo = Column(Boolean, default=True)

    entrenador = relationship("Entrenador", back_populates="horarios_recepcion")


class IntercambioHorario(Base):
    __tablename__ = "intercambios_horario"
    id = Column(Integer, primary_key=True)
    entrenador_origen_id = Column(Integer, ForeignKey("entrenadores.id"), nullable=False)
    entrenador_destino_id = Column(Integer, ForeignKey("entrenadores.id"), nullable=False)
    horario_origen_id = Column(Integer, ForeignKey("horarios_recepcion.id"), nullable=False)
    horario_destino_id = Column(Integer, ForeignKey("horarios_recepcion.id"), nullable=False)
    estado = Column(String(20), default=INTERCAMBIO_PENDIENTE)
    fecha_solicitud = Column(DateTime, default=datetime.datetime.now)
    fecha_respuesta = Column(DateTime, nullable=True)

    horario_origen = relationship("HorarioRecepcion", foreign_keys=[horario_origen_id])
    horario_destino = relationship("HorarioRecepcion", foreign_keys=[horario_destino_id])
