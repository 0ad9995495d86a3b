from typing import List, Optional
from pydantic import BaseModel
from datetime import datetime, date, time

# ==========================================
# AUTENTICACIÓN
# ==========================================

class LoginRequest(BaseModel):
    email: str
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    id: int
    nombre_completo: str
    email: str
    rol: str
    entrenador_id: Optional[int] = None
    requiere_cambio_password: bool = False

# Todos opcionales: la ruta responde 400 con un mensaje propio si falta alguno
class RegisterRequest(BaseModel):
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    nombre_usuario: Optional[str] = None
    password: Optional[str] = None
    rol_id: Optional[int] = None
    telefono: Optional[str] = None

class ChangePasswordRequest(BaseModel):
    email: str
    current_password: str
    new_password: str

class ResetPasswordRequest(BaseModel):
    email: str

class AdminResetPasswordRequest(BaseModel):
    email: str
    new_password: str

class ValidateAccountRequest(BaseModel):
    email: Optional[str] = None
    rut: Optional[str] = None
    exclude_id: Optional[int] = None
    user_type: Optional[str] = None  # "usuario" o "socio"

class RolResponse(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    class Config: from_attributes = True

# ==========================================
# SOCIOS Y ENTRENADORES
# ==========================================

class SocioCreate(BaseModel):
    rut: str
    nombre: str
    apellido: str
    email: str
    telefono: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    direccion: Optional[str] = None

class SocioUpdate(BaseModel):
    rut: Optional[str] = None
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None
    fecha_nacimiento: Optional[date] = None
    direccion: Optional[str] = None
    estado_socio: Optional[str] = None

class PerfilSocioUpdate(BaseModel):
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None

class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str

class PerfilAdminUpdate(BaseModel):
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None

class EntrenadorCreate(BaseModel):
    nombre: str
    apellido: str
    email: str
    nombre_usuario: Optional[str] = None
    telefono: Optional[str] = None
    especialidad: Optional[str] = None
    certificaciones: Optional[str] = None
    biografia: Optional[str] = None
    foto_url: Optional[str] = None

class EntrenadorUpdate(BaseModel):
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None
    especialidad: Optional[str] = None
    certificaciones: Optional[str] = None
    biografia: Optional[str] = None
    foto_url: Optional[str] = None

# ==========================================
# MEMBRESÍAS
# ==========================================

class PlanCreate(BaseModel):
    nombre_plan: str
    descripcion: Optional[str] = None
    precio: float
    duracion_dias: int = 30
    tipo_plan: str = "Normal"
    beneficios: Optional[str] = None
    descuento: Optional[float] = 0
    fecha_inicio_oferta: Optional[date] = None
    fecha_fin_oferta: Optional[date] = None

class PlanUpdate(BaseModel):
    nombre_plan: Optional[str] = None
    descripcion: Optional[str] = None
    precio: Optional[float] = None
    duracion_dias: Optional[int] = None
    tipo_plan: Optional[str] = None
    beneficios: Optional[str] = None
    descuento: Optional[float] = None
    fecha_inicio_oferta: Optional[date] = None
    fecha_fin_oferta: Optional[date] = None
    activo: Optional[bool] = None

class PlanResponse(BaseModel):
    id: int
    nombre_plan: str
    descripcion: Optional[str] = None
    precio: float
    duracion_dias: int
    tipo_plan: Optional[str] = None
    beneficios: Optional[str] = None
    descuento: Optional[float] = None
    fecha_inicio_oferta: Optional[date] = None
    fecha_fin_oferta: Optional[date] = None
    activo: bool
    class Config: from_attributes = True

class AsignarMembresia(BaseModel):
    socio_id: Optional[int] = None
    plan_id: Optional[int] = None
    pago_id: Optional[int] = None

class PausarMembresia(BaseModel):
    socio_id: int
    dias: int
    motivo: Optional[str] = None

class ReanudarMembresia(BaseModel):
    socio_id: int
    extender_vencimiento: bool = True

class CancelarMembresia(BaseModel):
    socio_id: int
    motivo: Optional[str] = None

class ExpireOfferRequest(BaseModel):
    plan_id: int

class CompraMembresia(BaseModel):
    plan_id: int

# ==========================================
# CLASES, RESERVAS Y SESIONES
# ==========================================

class ClaseCreate(BaseModel):
    nombre_clase: str
    descripcion: Optional[str] = None
    entrenador_id: int
    dias_semana: List[str]
    hora_inicio: time
    hora_fin: time
    cupo_maximo: int = 20
    tipo_clase: str = "Indefinida"
    numero_semanas: Optional[int] = None
    fecha_inicio: Optional[date] = None
    categoria: Optional[str] = None

class ClaseUpdate(BaseModel):
    nombre_clase: Optional[str] = None
    descripcion: Optional[str] = None
    entrenador_id: Optional[int] = None
    dias_semana: Optional[List[str]] = None
    hora_inicio: Optional[time] = None
    hora_fin: Optional[time] = None
    cupo_maximo: Optional[int] = None
    categoria: Optional[str] = None

class EntrenadorClaseCreate(BaseModel):
    nombre_clase: str
    descripcion: Optional[str] = None
    dia_semana: str
    hora_inicio: time
    hora_fin: time
    cupo_maximo: int = 20
    tipo: str = "Grupal"  # Grupal / Personal
    socio_id: Optional[int] = None
    tipo_clase: str = "Indefinida"
    numero_semanas: Optional[int] = None
    fecha_inicio: Optional[date] = None
    categoria: Optional[str] = None

class EntrenadorClaseUpdate(BaseModel):
    nombre_clase: Optional[str] = None
    descripcion: Optional[str] = None
    dia_semana: Optional[str] = None
    hora_inicio: Optional[time] = None
    hora_fin: Optional[time] = None
    cupo_maximo: Optional[int] = None
    socio_id: Optional[int] = None
    fecha_inicio: Optional[date] = None
    categoria: Optional[str] = None

class ReservaAdminCreate(BaseModel):
    socio_id: int
    fecha_clase: date

class ReservaSocioCreate(BaseModel):
    clase_id: int
    fecha_clase: date

class ReservaEstadoUpdate(BaseModel):
    estado: str

class SesionCreate(BaseModel):
    entrenador_id: int
    fecha_sesion: date
    hora_inicio: time
    hora_fin: time
    notas: Optional[str] = None

# ==========================================
# ASISTENCIA Y RECEPCIÓN
# ==========================================

class AsistenciaMarcar(BaseModel):
    socio_id: int
    tipo: str  # entrada / salida

class HorarioRecepcionCreate(BaseModel):
    entrenador_id: int
    dia_semana: str
    hora_inicio: time
    hora_fin: time

class IntercambioCreate(BaseModel):
    horario_origen_id: int
    horario_destino_id: int

class IntercambioRespuesta(BaseModel):
    accion: str  # aceptar / rechazar

# ==========================================
# INVENTARIO, VENTAS Y PAGOS
# ==========================================

class ProductoCreate(BaseModel):
    categoria_id: int
    nombre_producto: str
    descripcion: Optional[str] = None
    precio_venta: Optional[float] = None
    stock_actual: int = 0
    stock_minimo: int = 0
    unidad_medida: Optional[str] = None
    estado: str = "Disponible"

class ProductoUpdate(BaseModel):
    categoria_id: Optional[int] = None
    nombre_producto: Optional[str] = None
    descripcion: Optional[str] = None
    precio_venta: Optional[float] = None
    stock_actual: Optional[int] = None
    stock_minimo: Optional[int] = None
    unidad_medida: Optional[str] = None
    estado: Optional[str] = None

class CategoriaResponse(BaseModel):
    id: int
    nombre_categoria: str
    tipo_categoria: Optional[str] = None
    class Config: from_attributes = True

class ProductoResponse(BaseModel):
    id: int
    categoria_id: int
    nombre_producto: str
    descripcion: Optional[str] = None
    precio_venta: Optional[float] = None
    stock_actual: int
    stock_minimo: int
    unidad_medida: Optional[str] = None
    estado: str
    categoria: Optional[CategoriaResponse] = None
    class Config: from_attributes = True

class CarritoItem(BaseModel):
    producto_id: int
    cantidad: int

class VentaCreate(BaseModel):
    socio_id: Optional[int] = None
    metodo_pago: str = "Efectivo"
    carrito: List[CarritoItem] = []

class ProcesarPago(BaseModel):
    socio_id: int
    monto: float
    medio_pago: str = "Efectivo"
    membresia_id: Optional[int] = None
    plan_id: Optional[int] = None
    concepto: Optional[str] = None

class PagoCreate(BaseModel):
    socio_id: int
    monto_pago: float
    medio_pago: str = "Efectivo"
    membresia_id: Optional[int] = None
    concepto: Optional[str] = None

class PagoResponse(BaseModel):
    id: int
    socio_id: int
    membresia_id: Optional[int] = None
    monto_pago: float
    medio_pago: Optional[str] = None
    fecha_pago: Optional[datetime] = None
    concepto: Optional[str] = None
    numero_comprobante: Optional[str] = None
    estado: Optional[str] = None
    class Config: from_attributes = True

class ComprobanteResponse(BaseModel):
    id: int
    pago_id: int
    socio_id: int
    membresia_id: Optional[int] = None
    numero_comprobante: str
    fecha_emision: Optional[datetime] = None
    monto_pago: float
    medio_pago: Optional[str] = None
    nombre_socio: Optional[str] = None
    email_socio: Optional[str] = None
    nombre_plan: Optional[str] = None
    duracion_plan: Optional[int] = None
    fecha_inicio: Optional[date] = None
    fecha_vencimiento: Optional[date] = None
    concepto: Optional[str] = None
    estado: Optional[str] = None
    class Config: from_attributes = True

# ==========================================
# NOTIFICACIONES
# ==========================================

class NotificacionResponse(BaseModel):
    id: int
    tipo_usuario: str
    usuario_id: Optional[int] = None
    tipo_evento: str
    titulo: str
    mensaje: str
    leida: bool
    fecha_creacion: Optional[datetime] = None
    class Config: from_attributes = True

class NotificacionPatch(BaseModel):
    notificacion_id: Optional[int] = None
    marcar_todas_leidas: bool = False
