import re

# Validaciones de datos chilenos: RUT y teléfono móvil


def limpiar_rut(rut):
    return str(rut or "").replace(".", "").replace("-", "").strip().upper()


def validate_rut(rut):
    """Valida un RUT chileno con su dígito verificador (módulo 11)."""
    limpio = limpiar_rut(rut)
    if len(limpio) < 8 or len(limpio) > 9:
        return False

    cuerpo, dv = limpio[:-1], limpio[-1]
    if not cuerpo.isdigit():
        return False

    suma = 0
    multiplo = 2
    for digito in reversed(cuerpo):
        suma += int(digito) * multiplo
        multiplo = 2 if multiplo == 7 else multiplo + 1

    resto = 11 - (suma % 11)
    if resto == 11:
        esperado = "0"
    elif resto == 10:
        esperado = "K"
    else:
        esperado = str(resto)
    return dv == esperado


def format_rut(rut):
    """Formatea el RUT como xx.xxx.xxx-x"""
    limpio = limpiar_rut(rut)
    if len(limpio) < 2:
        return limpio
    cuerpo, dv = limpio[:-1], limpio[-1]
    grupos = []
    while len(cuerpo) > 3:
        grupos.insert(0, cuerpo[-3:])
        cuerpo = cuerpo[:-3]
    grupos.insert(0, cuerpo)
    return f"{'.'.join(grupos)}-{dv}"


def limpiar_telefono(phone):
    return re.sub(r"[\s()+\-]", "", str(phone or ""))


def validate_phone(phone):
    """Acepta 569XXXXXXXX o 9XXXXXXXX"""
    limpio = limpiar_telefono(phone)
    return bool(re.fullmatch(r"569\d{8}", limpio) or re.fullmatch(r"9\d{8}", limpio))


def format_phone(phone):
    """Formatea el móvil como (+56) 9 xxxx xxxx"""
    limpio = limpiar_telefono(phone)
    if limpio.startswith("56"):
        limpio = limpio[2:]
    if len(limpio) != 9:
        return phone
    return f"(+56) {limpio[0]} {limpio[1:5]} {limpio[5:]}"
