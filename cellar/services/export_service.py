"""
数据导出服务
库存清单、酒罐组成导出为 Excel / CSV
"""
from io import BytesIO, StringIO
from datetime import datetime
from typing import List, Dict, Any
import csv

import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter


STOCK_COLUMNS = [
    {'field': 'name', 'header': '名称', 'width': 24},
    {'field': 'unit', 'header': '单位', 'width': 10},
    {'field': 'quantity', 'header': '数量', 'width': 12},
    {'field': 'minimum_qty', 'header': '预警阈值', 'width': 12},
    {'field': 'is_out_of_stock', 'header': '缺货', 'width': 8},
    {'field': 'description', 'header': '备注', 'width': 30},
]

COMPOSITION_COLUMNS = [
    {'field': 'tank', 'header': '酒罐', 'width': 18},
    {'field': 'status', 'header': '状态', 'width': 14},
    {'field': 'capacity', 'header': '容量 (hL)', 'width': 12},
    {'field': 'grape_variety', 'header': '品种', 'width': 22},
    {'field': 'volume', 'header': '体积 (hL)', 'width': 12},
    {'field': 'percentage', 'header': '占比 (%)', 'width': 12},
]


def _cell_value(value):
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if value is None:
        return ''
    if isinstance(value, bool):
        return '是' if value else '否'
    return value


class ExportService:
    """数据导出服务"""

    @staticmethod
    def stock_rows(stocks) -> List[Dict[str, Any]]:
        return [
            {
                'name': s.name,
                'unit': s.unit,
                'quantity': s.quantity,
                'minimum_qty': s.minimum_qty,
                'is_out_of_stock': s.is_out_of_stock,
                'description': s.description,
            }
            for s in stocks
        ]

    @staticmethod
    def composition_rows(tanks) -> List[Dict[str, Any]]:
        """每个 (酒罐, 品种) 一行；空罐也输出一行以便盘点"""
        rows = []
        for tank in tanks:
            base = {'tank': tank.name, 'status': tank.status, 'capacity': tank.capacity}
            if not tank.grape_compositions:
                rows.append(dict(base, grape_variety=None, volume=0, percentage=0))
                continue
            for gc in tank.grape_compositions:
                rows.append(dict(
                    base,
                    grape_variety=gc.grape_variety,
                    volume=round(gc.volume, 2),
                    percentage=round(gc.percentage, 2),
                ))
        return rows

    @staticmethod
    def export(data, columns, fmt, name, title):
        """
        按格式导出

        :param fmt: 'excel' / 'csv'
        :return: (文件流, 文件名, mimetype)
        """
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        if fmt == 'excel':
            output = ExportService.export_to_excel(data=data, columns=columns, sheet_name=name, title=title)
            return output, f'{name}_{stamp}.xlsx', \
                'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        output = ExportService.export_to_csv(data=data, columns=columns)
        return output, f'{name}_{stamp}.csv', 'text/csv'

    @staticmethod
    def export_to_excel(
        data: List[Dict[str, Any]],
        columns: List[Dict[str, str]],
        sheet_name: str = "Sheet1",
        title: str = "数据导出"
    ) -> BytesIO:
        """
        导出数据到 Excel

        Args:
            data: 数据列表 [{"field1": value1, "field2": value2}, ...]
            columns: 列定义 [{"field": "field1", "header": "字段1", "width": 15}, ...]
            sheet_name: 工作表名称
            title: 报表标题

        Returns:
            BytesIO: Excel 文件流
        """
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = sheet_name

        # 酒红配色
        title_font = Font(size=16, bold=True, color='FFFFFF')
        title_fill = PatternFill(start_color='7B1E3A', end_color='7B1E3A', fill_type='solid')
        header_font = Font(size=11, bold=True, color='FFFFFF')
        header_fill = PatternFill(start_color='A23B5A', end_color='A23B5A', fill_type='solid')
        thin = Side(style='thin', color='E5E7EB')
        border = Border(left=thin, right=thin, top=thin, bottom=thin)

        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))
        title_cell = ws.cell(row=1, column=1, value=f"{title} ({datetime.now().strftime('%Y-%m-%d %H:%M')})")
        title_cell.font = title_font
        title_cell.fill = title_fill
        title_cell.alignment = Alignment(horizontal='center', vertical='center')
        ws.row_dimensions[1].height = 28

        for col_idx, col_def in enumerate(columns, start=1):
            cell = ws.cell(row=2, column=col_idx, value=col_def['header'])
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal='center', vertical='center')
            cell.border = border
            ws.column_dimensions[get_column_letter(col_idx)].width = col_def.get('width', 15)

        for row_idx, row_data in enumerate(data, start=3):
            for col_idx, col_def in enumerate(columns, start=1):
                value = _cell_value(row_data.get(col_def['field']))
                cell = ws.cell(row=row_idx, column=col_idx, value=value)
                cell.border = border
                # 数字右对齐
                horizontal = 'right' if isinstance(value, (int, float)) else 'left'
                cell.alignment = Alignment(horizontal=horizontal, vertical='center')

        ws.freeze_panes = 'A3'

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output

    @staticmethod
    def export_to_csv(data: List[Dict[str, Any]], columns: List[Dict[str, str]]) -> BytesIO:
        """导出数据到 CSV (UTF-8 with BOM，Excel 直接打开不乱码)"""
        text_output = StringIO()
        writer = csv.DictWriter(
            text_output,
            fieldnames=[col['field'] for col in columns],
            extrasaction='ignore'
        )
        writer.writerow({col['field']: col['header'] for col in columns})
        for row in data:
            writer.writerow({col['field']: _cell_value(row.get(col['field'])) for col in columns})

        output = BytesIO()
        output.write('\ufeff'.encode('utf-8'))
        output.write(text_output.getvalue().encode('utf-8'))
        output.seek(0)
        return output
